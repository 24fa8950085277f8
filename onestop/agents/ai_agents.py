"""
AI Agents for One Stop Finance

CRITICAL BOUNDARIES:

1. RECEIPT SCAN AGENT:
   - CAN: Propose amount, date, description, category and merchant
   - CANNOT: Persist anything; the user reviews the proposal first
   - MUST: Fail the whole scan when the reply is not a JSON object
           (never return partial fields)

2. TRANSACTION PROMPT AGENT:
   - CAN: Turn "Spent 500 on lunch" into transaction fields
   - CANNOT: Choose the account; it always uses the caller's default
   - CANNOT: Bypass Transaction Creation (identity, admission, ownership)
   - MUST: Reject replies missing amount, type or category

The LLM is a TRANSLATOR, not an ORACLE of financial data.
Its reply is untrusted text and is parsed strictly.
"""

import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional
from uuid import UUID

import structlog
from dateutil import parser as date_parser

from onestop.audit import AuditLogger, create_correlation_id
from onestop.config import get_settings
from onestop.errors import (
    AmbiguousDefaultAccountError,
    FinanceError,
    IncompleteExtractionError,
    NoDefaultAccountError,
    OracleParseError,
    OracleUnavailableError,
    ScanFailedError,
    UnauthorizedError,
    UserNotFoundError,
    ValidationError,
)
from onestop.models.result import ErrorKind, ServiceResult
from onestop.models.transaction import (
    EXPENSE_CATEGORIES,
    AccountRecord,
    ReceiptScan,
    TransactionRecord,
    as_naive_utc,
    utcnow,
)
from onestop.services.identity import IdentityProvider
from onestop.services.oracle import ContentPart, GenerativeOracle, parse_oracle_json
from onestop.services.storage import FinanceStorageInterface
from onestop.services.transactions import TransactionCreationService


logger = structlog.get_logger(__name__)

# Service name recorded on audit events for failed model calls
ORACLE_SERVICE = "generative_oracle"

RECEIPT_PROMPT = f"""
Analyze this receipt image and extract the following information in JSON format:
- Total amount (just the number)
- Date (in ISO format)
- Description or items purchased (brief summary)
- Merchant/store name
- Suggested category (one of: {', '.join(EXPENSE_CATEGORIES)})

Only respond with valid JSON in this exact format:
{{
  "amount": number,
  "date": "ISO date string",
  "description": "string",
  "merchantName": "string",
  "category": "string"
}}

If it's not a receipt, return an empty object.
"""

PROMPT_CATEGORIES = EXPENSE_CATEGORIES + ("salary", "other-income")

TRANSACTION_PROMPT_TEMPLATE = """
Analyze the following user input and extract the transaction details in JSON format:
- Type: INCOME or EXPENSE
- Amount (number only)
- Date (ISO format, use today if not specified)
- Description (short summary)
- Category (one of: {categories})

Only respond with valid JSON in this exact format:
{{
  "type": "INCOME" | "EXPENSE",
  "amount": number,
  "date": "ISO date string",
  "description": "string",
  "category": "string"
}}

User input: "{prompt}"
"""

# Leading numeric prefix, the way a lenient float parser reads "12.50 USD"
_NUMBER_PREFIX_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")

NAN = Decimal("NaN")


def parse_amount(value: Any) -> Decimal:
    """
    Coerce an oracle amount to a Decimal.

    Numbers are taken as-is. Strings lose thousands separators and are
    read up to the first non-numeric character. Anything else, or a
    string with no numeric prefix, gives Decimal("NaN").
    """
    if isinstance(value, bool) or value is None:
        return NAN
    if isinstance(value, (int, float, Decimal)):
        try:
            return Decimal(str(value))
        except InvalidOperation:
            return NAN
    if isinstance(value, str):
        match = _NUMBER_PREFIX_RE.match(value.strip().replace(",", ""))
        if match:
            return Decimal(match.group())
    return NAN


def parse_date(value: Any) -> Optional[datetime]:
    """Parse an ISO-ish date from the oracle; None if it does not parse."""
    if not value or not isinstance(value, str):
        return None
    try:
        return as_naive_utc(date_parser.isoparse(value.strip()))
    except (ValueError, OverflowError):
        return None


def _text_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class ReceiptScanAgent:
    """
    Proposes transaction fields from a receipt photo.

    RESPONSIBILITIES:
    - Check the upload (type, size) before spending an oracle call
    - Send the image with the fixed instruction prompt
    - Parse the reply strictly

    BOUNDARIES:
    - NEVER persists data
    - NEVER returns partial fields from a reply it could not parse
    """

    def __init__(
        self,
        oracle: GenerativeOracle,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._oracle = oracle
        self._audit_logger = audit_logger
        self._settings = get_settings().app

    def _check_upload(self, image_bytes: bytes, mime_type: str) -> None:
        if not image_bytes:
            raise ValidationError("No image provided")
        if (mime_type or "").lower() not in self._settings.supported_mime_types:
            raise ValidationError(
                f"Unsupported image type: {mime_type}. "
                f"Use one of: {', '.join(self._settings.supported_formats_list)}"
            )
        if len(image_bytes) > self._settings.max_upload_size_bytes:
            raise ValidationError(
                f"Image is too large. Maximum size is {self._settings.max_upload_size_mb} MB"
            )

    async def scan_receipt(
        self,
        image_bytes: bytes,
        mime_type: str,
        correlation_id: Optional[UUID] = None,
    ) -> ServiceResult[ReceiptScan]:
        """
        Extract proposed transaction fields from a receipt image.

        Returns:
            ServiceResult with a ReceiptScan. An image that is not a
            receipt succeeds with an empty scan (is_receipt is False).
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            self._check_upload(image_bytes, mime_type)
        except ValidationError as e:
            return ServiceResult.fail(e.kind, e.message)

        try:
            reply = await self._oracle.generate([
                ContentPart.inline(image_bytes, mime_type.lower()),
                ContentPart.from_text(RECEIPT_PROMPT),
            ])
            data = parse_oracle_json(reply)
        except Exception as e:
            message = e.message if isinstance(e, FinanceError) else str(e)
            logger.error("receipt_scan_failed", error=message)
            if self._audit_logger:
                if not isinstance(e, OracleParseError):
                    await self._audit_logger.log_external_service_error(
                        service=ORACLE_SERVICE,
                        error_message=message,
                        correlation_id=correlation_id,
                    )
                await self._audit_logger.log_receipt_scan_failed(
                    error_message=message,
                    correlation_id=correlation_id,
                )
            failure = ScanFailedError()
            return ServiceResult.fail(failure.kind, failure.message)

        if data:
            scan = ReceiptScan(
                amount=parse_amount(data.get("amount")),
                date=parse_date(data.get("date")),
                description=_text_or_none(data.get("description")),
                category=_text_or_none(data.get("category")),
                merchant_name=_text_or_none(data.get("merchantName")),
            )
        else:
            scan = ReceiptScan()

        if self._audit_logger:
            await self._audit_logger.log_receipt_scanned(
                mime_type=mime_type,
                size_bytes=len(image_bytes),
                is_receipt=scan.is_receipt,
                correlation_id=correlation_id,
            )
        return ServiceResult.ok(scan)


class TransactionPromptAgent:
    """
    Creates a transaction from a natural-language prompt.

    FLOW:
    1. Resolve the caller and their single default account
    2. Ask the oracle for the transaction fields
    3. Parse and check them (deterministic)
    4. Hand them to Transaction Creation, which does the rest
    """

    def __init__(
        self,
        oracle: GenerativeOracle,
        storage: FinanceStorageInterface,
        identity: IdentityProvider,
        transactions: TransactionCreationService,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._oracle = oracle
        self._storage = storage
        self._identity = identity
        self._transactions = transactions
        self._audit_logger = audit_logger

    async def _default_account(self, user_id: int) -> AccountRecord:
        defaults = await self._storage.list_default_accounts(user_id)
        if not defaults:
            raise NoDefaultAccountError()
        if len(defaults) > 1:
            raise AmbiguousDefaultAccountError(
                details={"account_ids": [acc.id for acc in defaults]}
            )
        return defaults[0]

    async def _extract(self, prompt: str) -> dict:
        instruction = TRANSACTION_PROMPT_TEMPLATE.format(
            categories=", ".join(PROMPT_CATEGORIES),
            prompt=prompt,
        )
        reply = await self._oracle.generate([ContentPart.from_text(instruction)])
        return parse_oracle_json(reply)

    async def create_transaction_from_prompt(
        self,
        prompt: str,
        correlation_id: Optional[UUID] = None,
    ) -> ServiceResult[TransactionRecord]:
        """
        Extract a transaction from free text and record it on the default account.

        Failures of the delegated creation are returned unchanged.
        """
        correlation_id = correlation_id or create_correlation_id()
        subject = None

        try:
            subject = self._identity.current_subject()
            if not subject:
                raise UnauthorizedError()

            user = await self._storage.get_user_by_external_id(subject)
            if user is None:
                raise UserNotFoundError()

            account = await self._default_account(user.id)

            prompt = (prompt or "").strip()
            if not prompt:
                raise ValidationError("Please describe the transaction")

            data = await self._extract(prompt)

            if not data.get("amount") or not data.get("type") or not data.get("category"):
                raise IncompleteExtractionError(details={"fields": sorted(data)})

        except FinanceError as e:
            if isinstance(e, (OracleParseError, OracleUnavailableError, IncompleteExtractionError)):
                logger.warning("prompt_extraction_failed", kind=e.kind.value, details=e.details)
            if self._audit_logger:
                if isinstance(e, OracleUnavailableError):
                    await self._audit_logger.log_external_service_error(
                        service=ORACLE_SERVICE,
                        error_message=e.message,
                        correlation_id=correlation_id,
                    )
                await self._audit_logger.log_prompt_extraction_failed(
                    subject=subject,
                    error_kind=e.kind.value,
                    error_message=e.message,
                    correlation_id=correlation_id,
                )
            return ServiceResult.fail(e.kind, e.message, e.details)

        except Exception as e:
            logger.exception("create_transaction_from_prompt_failed", error=str(e))
            return ServiceResult.fail(ErrorKind.INTERNAL, "Something went wrong. Please try again.")

        category = str(data["category"])
        transaction_data = {
            "account_id": account.id,
            "type": str(data["type"]).upper(),
            "amount": parse_amount(data["amount"]),
            "category": category,
            "description": _text_or_none(data.get("description")) or category,
            "date": parse_date(data.get("date")) or utcnow(),
            "is_recurring": False,
        }

        if self._audit_logger:
            await self._audit_logger.log_prompt_extracted(
                subject=subject,
                fields={key: str(value) for key, value in transaction_data.items()},
                correlation_id=correlation_id,
            )

        return await self._transactions.create_transaction(
            transaction_data,
            correlation_id=correlation_id,
        )
