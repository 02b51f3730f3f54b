"""HTML bodies for outbound customer email."""

from __future__ import annotations

from decimal import Decimal
from html import escape

from ..models import Quote

CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "CAD": "CA$",
    "AUD": "A$",
}

QUOTE_APPROVED_SUBJECT = "Your {destination} Travel Quote Has Been Approved!"


def format_price(amount: Decimal | float | int, currency: str = "USD") -> str:
    """en-US currency display without forced cents: 4200 -> "$4,200"."""

    value = Decimal(str(amount))
    if value == value.to_integral_value():
        number = f"{value:,.0f}"
    else:
        number = f"{value:,.2f}"
    code = (currency or "USD").upper()
    symbol = CURRENCY_SYMBOLS.get(code)
    return f"{symbol}{number}" if symbol else f"{code} {number}"


def _detail_row(label: str, value: str) -> str:
    return (
        '<div style="display: flex; justify-content: space-between; padding: 12px 0; border-bottom: 1px solid #e0e0e0;">'
        f'<span style="color: #666; font-weight: 500;">{label}:</span>'
        f'<span style="color: #8B4513; font-weight: 600;">{value}</span>'
        "</div>"
    )


def render_quote_approved(quote: Quote, signup_link: str, signin_link: str, site_url: str) -> str:
    price = format_price(quote.quoted_price, quote.quoted_currency)
    notes = ""
    if quote.admin_notes:
        notes = (
            '<div style="margin-top: 25px; padding: 20px; background: rgba(139, 69, 19, 0.05); border-radius: 8px;">'
            '<p style="margin: 0 0 8px 0; color: #8B4513; font-weight: 500;">Special Notes:</p>'
            f'<p style="margin: 0; color: #666; line-height: 1.5;">{escape(quote.admin_notes)}</p>'
            "</div>"
        )

    rows = "".join(
        [
            _detail_row("Destination", escape(quote.destination)),
            _detail_row("Duration", f"{quote.duration} days"),
            _detail_row("Travelers", f"{quote.participants} people"),
        ]
    )
    button = (
        '<a href="{href}" style="display: inline-block; background: {bg}; color: white; padding: 16px 35px; '
        'text-decoration: none; border-radius: 8px; font-weight: bold; font-size: 16px;">{label}</a>'
    )

    return f"""
<html>
  <body style="font-family: 'Segoe UI', Arial, sans-serif; margin: 0; padding: 20px; background-color: #F5F5DC;">
    <div style="max-width: 600px; margin: 0 auto; background-color: white; border-radius: 15px; overflow: hidden;">
      <div style="background: linear-gradient(135deg, #8B4513, #DAA520); padding: 40px 30px; text-align: center; color: white;">
        <img src="{escape(site_url)}/logo.png" alt="Meridian Luxury Travel" style="width: 80px; height: 80px; border-radius: 50%;">
        <h1 style="margin: 0; font-size: 32px;">Great News!</h1>
        <p style="margin: 15px 0 0 0; font-size: 20px;">Your travel quote has been approved</p>
      </div>
      <div style="padding: 40px 30px;">
        <div style="background: #faf8f5; padding: 30px; border-radius: 12px; border-left: 5px solid #DAA520;">
          <h2 style="color: #8B4513; margin-top: 0;">Your Approved Quote</h2>
          {rows}
          <div style="display: flex; justify-content: space-between; padding: 20px 15px; background: rgba(218, 165, 32, 0.1); border-radius: 8px;">
            <span style="color: #8B4513; font-weight: 600; font-size: 18px;">Total Price:</span>
            <span style="color: #DAA520; font-size: 28px; font-weight: bold;">{price}</span>
          </div>
          {notes}
        </div>
        <div style="text-align: center; margin: 35px 0;">
          <h3 style="color: #8B4513;">Ready to Book Your Adventure?</h3>
          <div style="margin-bottom: 15px;">{button.format(href=escape(signup_link), bg="#DAA520", label="Create New Account")}</div>
          <div style="margin-bottom: 15px;">{button.format(href=escape(signin_link), bg="#8B4513", label="Sign In to Existing Account")}</div>
          <p style="font-size: 13px; color: #888;">Already have an account? Use "Sign In". New to Meridian Travel? Use "Create New Account".</p>
        </div>
      </div>
      <div style="background: #f8f5f0; padding: 30px; text-align: center; border-top: 3px solid #DAA520; font-size: 14px; color: #666;">
        <h4 style="color: #8B4513; margin: 0 0 8px 0;">Meridian Luxury Travel</h4>
        <p style="margin: 0 0 8px 0;">This secure link will automatically attach your quote to your account.</p>
        <p style="margin: 0;">Questions? Simply reply to this email - we're here to help!</p>
      </div>
    </div>
  </body>
</html>
"""
