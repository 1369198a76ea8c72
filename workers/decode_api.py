"""Client for the external zkOS transaction decode API."""
import logging
from typing import Any, Dict, List, Optional

import requests
from pydantic import BaseModel, ConfigDict, ValidationError

logger = logging.getLogger(__name__)

DECODE_PATH = '/api/decode-zkos-transaction'

class DecodeApiError(Exception):
    """Raised when a bytecode could not be decoded"""
    pass

class ZkosSummary(BaseModel):
    model_config = ConfigDict(extra='allow')

    program_type: Optional[str] = None

class DecodedZkosTransaction(BaseModel):
    """Structural check of a decode result; unknown fields are kept."""
    model_config = ConfigDict(extra='allow')

    inputs: List[Any]
    outputs: List[Any]
    summary: Optional[ZkosSummary] = None
    tx_type: Optional[str] = None

    @property
    def program_type(self) -> Optional[str]:
        """Coarse classification: summary.program_type, else tx_type."""
        if self.summary and self.summary.program_type:
            return self.summary.program_type
        return self.tx_type or None

class ZkosDecodeClient:
    """Decode API client"""

    def __init__(self, base_url: str, timeout: float = 10, session: Optional[requests.Session] = None):
        """Initialize decode client.

        Args:
            base_url: Decode service root URL
            timeout: Request timeout in seconds
            session: Optional preconfigured requests session
        """
        self.url = f"{base_url.rstrip('/')}{DECODE_PATH}"
        self.timeout = timeout
        self.session = session or requests.Session()

    def decode(self, tx_byte_code: str) -> Dict[str, Any]:
        """Decode zkOS transaction bytecode.

        Args:
            tx_byte_code: Hex bytecode from a MsgTransferTx

        Returns:
            The decode result as returned by the service

        Raises:
            DecodeApiError: On transport failure, an empty result or a result
                without input/output lists
        """
        try:
            response = self.session.post(
                self.url,
                json={'tx_byte_code': tx_byte_code},
                timeout=self.timeout
            )
            response.raise_for_status()
            payload = response.json()
        except requests.exceptions.Timeout as e:
            raise DecodeApiError(f"Decode request timed out after {self.timeout} seconds") from e
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else 'unknown'
            raise DecodeApiError(f"Decode API returned HTTP {status}") from e
        except requests.exceptions.RequestException as e:
            raise DecodeApiError(f"Decode request failed: {e}") from e
        except ValueError as e:
            raise DecodeApiError(f"Decode API returned invalid JSON: {e}") from e

        if not payload:
            raise DecodeApiError("Decode API returned an empty result")

        try:
            DecodedZkosTransaction.model_validate(payload)
        except ValidationError as e:
            raise DecodeApiError(
                f"Decode API returned an invalid structure: {e.error_count()} errors"
            ) from e

        return payload

    def close(self) -> None:
        self.session.close()
