"""AI Agents package."""

from onestop.agents.ai_agents import (
    RECEIPT_PROMPT,
    TRANSACTION_PROMPT_TEMPLATE,
    ReceiptScanAgent,
    TransactionPromptAgent,
    parse_amount,
    parse_date,
)

__all__ = [
    "RECEIPT_PROMPT",
    "TRANSACTION_PROMPT_TEMPLATE",
    "ReceiptScanAgent",
    "TransactionPromptAgent",
    "parse_amount",
    "parse_date",
]
