"""
영수증 렌더링

주문 + 정산 결과 → Posting 첨부 문서.
파일명 stem(shopify-order-<번호>)으로 기존 첨부 여부를 판단.
"""

import json

from adapters.models import ReceiptDocument, RemotePosting
from core.domain.orders import Order
from core.ledger.types import SettlementOutcome, format_minor
from core.utils.idempotency import receipt_stem

# 원본 JSON 발췌 길이
RAW_SNIPPET_CHARS = 4000


def has_receipt(posting: RemotePosting, order: Order) -> bool:
    """Posting에 이 주문의 영수증이 이미 첨부되어 있는지"""
    return posting.has_attachment(receipt_stem(order))


class TextReceiptRenderer:
    """plain-text 영수증 렌더러 (IReceiptRenderer)"""

    content_type = "text/plain"
    extension = "txt"

    def render(self, order: Order, outcome: SettlementOutcome) -> ReceiptDocument:
        currency = outcome.breakdown.currency
        totals = outcome.breakdown.totals
        lines: list[str] = []

        lines.append(f"Shopify Order #{order.display_number}")
        lines.append("")
        lines.append(f"Order ID: {order.order_id}")
        lines.append(f"Sale number: {outcome.posting.business_key}")
        lines.append(f"Sale date: {outcome.posting.posting_date.isoformat()}")
        lines.append(f"Order date: {order.created_at or 'n/a'}")
        lines.append(f"Processed at: {order.processed_at or 'n/a'}")
        lines.append(f"Financial status: {order.financial_status.value}")
        lines.append("")

        lines.append("Customer")
        contact = order.contact
        lines.append(contact.full_name or contact.company or "Unknown customer")
        if contact.email:
            lines.append(contact.email)
        billing = order.billing_address
        if billing is not None:
            city_line = f"{billing.postal_code or ''} {billing.city or ''}".strip()
            for value in (billing.address1, billing.address2, city_line, billing.country_code):
                if value:
                    lines.append(value)
        lines.append("")

        lines.append("Lines")
        for line in outcome.breakdown.lines:
            lines.append(
                f"- {line.description}: net {format_minor(line.net)} "
                f"+ VAT {format_minor(line.vat)} = {format_minor(line.gross)} {currency}"
            )
        lines.append("")

        lines.append("Totals")
        lines.append(f"Net amount: {format_minor(totals.net)} {currency}")
        lines.append(f"VAT amount: {format_minor(totals.vat)} {currency}")
        lines.append(f"Recorded sale gross: {format_minor(totals.gross)} {currency}")
        if order.total_price is not None:
            lines.append(f"Shopify total: {order.total_price} {order.currency or currency}")
        lines.append(f"Discounts: {order.total_discounts} {order.currency or currency}")
        lines.append(f"Total tax (Shopify): {order.total_tax} {order.currency or currency}")

        plan = outcome.plan
        if plan is not None:
            lines.append("")
            lines.append("Payment summary")
            lines.append(f"Bank account: {format_minor(plan.bank_amount)} {currency}")
            if plan.fee_amount > 0:
                lines.append(f"Fee account: {format_minor(plan.fee_amount)} {currency}")

        lines.append("")
        lines.append("Raw order JSON (truncated)")
        lines.append(json.dumps(order.raw, indent=2, ensure_ascii=False, default=str)[:RAW_SNIPPET_CHARS])

        return ReceiptDocument(
            filename=f"{receipt_stem(order)}.{self.extension}",
            content="\n".join(lines).encode("utf-8"),
            content_type=self.content_type,
            description=f"Shopify order #{order.display_number}",
        )
