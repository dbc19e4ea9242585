ORDER_CONFIRMATION_HTML = """<!doctype html>
<html lang="es">
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>Tu compra fue confirmada</title>
  </head>
  <body style="margin:0;padding:0;background:#f6f9fc;">
    <!-- Preheader (hidden preview text) -->
    <div style="display:none;max-height:0;overflow:hidden;opacity:0;color:transparent;">
      Recibimos tu pago. Pedido #{{order_id}}.
    </div>

    <table role="presentation" cellpadding="0" cellspacing="0" border="0" width="100%" style="background:#f6f9fc;">
      <tr>
        <td align="center" style="padding:28px 12px;">
          <table role="presentation" cellpadding="0" cellspacing="0" border="0" width="600" style="width:600px;max-width:600px;">
            <tr>
              <td style="background:#ffffff;border:1px solid #e6ebf1;border-radius:14px;overflow:hidden;">
                <!-- Header -->
                <table role="presentation" cellpadding="0" cellspacing="0" border="0" width="100%">
                  <tr>
                    <td style="padding:26px 26px 10px 26px;">
                      <div style="font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,Arial,sans-serif;
                        font-size:12px;font-weight:700;color:#6b7c93;text-transform:uppercase;letter-spacing:0.08em;">
                        PEDIDO #{{order_id}}
                      </div>
                      <div style="margin-top:6px;font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,Arial,sans-serif;
                        font-size:22px;font-weight:800;color:#0a2540;letter-spacing:-0.02em;line-height:1.25;">
                        ¡Gracias por tu compra, {{first_name}}!
                      </div>
                      <div style="margin-top:10px;font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,Arial,sans-serif;
                        font-size:14px;font-weight:500;color:#425466;line-height:1.6;">
                        Tu pago en {{store_name}} fue aprobado. Te avisamos cuando despachemos el envío.
                      </div>
                    </td>
                  </tr>
                </table>

                <div style="height:1px;background:#e6ebf1;"></div>

                <!-- Items -->
                <table role="presentation" cellpadding="0" cellspacing="0" border="0" width="100%" style="padding:16px 26px;">
                  {{items_html}}
                  <tr>
                    <td style="padding-top:12px;font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,Arial,sans-serif;
                      font-size:14px;font-weight:800;color:#0a2540;">
                      Total pagado
                    </td>
                    <td align="right" style="padding-top:12px;font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,Arial,sans-serif;
                      font-size:14px;font-weight:800;color:#0a2540;">
                      ${{total_amount}}
                    </td>
                  </tr>
                </table>

                <div style="height:1px;background:#e6ebf1;"></div>

                <!-- Shipping -->
                <table role="presentation" cellpadding="0" cellspacing="0" border="0" width="100%">
                  <tr>
                    <td style="padding:16px 26px 22px 26px;font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,Arial,sans-serif;
                      font-size:13px;font-weight:500;color:#425466;line-height:1.6;">
                      <strong style="color:#0a2540;">Envío:</strong> {{shipping_method}} {{shipping_carrier}}<br />
                      {{address}}, {{city}}, {{province}} ({{postal_code}})<br />
                      ¿Dudas? Escribinos a
                      <a href="mailto:{{support_email}}" style="color:#2b6cee;text-decoration:none;font-weight:700;">{{support_email}}</a>
                    </td>
                  </tr>
                </table>
              </td>
            </tr>

            <tr>
              <td align="center" style="padding:14px 0;font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,Arial,sans-serif;
                font-size:11px;color:#8898aa;">
                © {{year}} {{store_name}}
              </td>
            </tr>
          </table>
        </td>
      </tr>
    </table>
  </body>
</html>
"""

ORDER_ITEM_ROW_HTML = """<tr>
                    <td style="padding:6px 0;font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,Arial,sans-serif;
                      font-size:13px;color:#425466;">
                      {{quantity}} × {{product_name}} <span style="color:#8898aa;">{{variant}}</span>
                    </td>
                    <td align="right" style="padding:6px 0;font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,Arial,sans-serif;
                      font-size:13px;color:#425466;">
                      ${{line_total}}
                    </td>
                  </tr>"""
