"""LCD module for reading the Twilight ledger over its Cosmos REST gateway"""
import logging
from typing import Any, Dict, List, Optional

import backoff
import requests

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30
TX_PAGE_LIMIT = 100

class LcdError(Exception):
    """Base exception for LCD errors"""
    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(f"{message} ({path})" if path else message)

class NodeConnectionError(LcdError):
    """Raised when the LCD endpoint cannot be reached or answers garbage"""
    pass

class LcdHttpError(LcdError):
    """Raised when the LCD answers with a non-2xx status

    Common status codes:
    400 - Bad request (the tx search answers this for some empty heights)
    404 - Not found (height not yet produced or pruned)
    429 - Rate limited
    5xx - Node or gateway failure
    """
    def __init__(self, message: str, status_code: int, path: Optional[str] = None):
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}: {message}", path)

class LcdClient:
    """Twilight LCD REST client"""

    def __init__(self, base_url: str, timeout: float = DEFAULT_TIMEOUT, session: Optional[requests.Session] = None):
        """Initialize LCD client.

        Args:
            base_url: LCD root URL, e.g. https://lcd.twilight.org
            timeout: Per-request timeout in seconds
            session: Optional preconfigured requests session
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout

        self.session = session or requests.Session()
        self.session.headers['content-type'] = 'application/json'

    @backoff.on_exception(backoff.expo, NodeConnectionError, max_tries=3, max_time=60)
    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Make a GET request against the LCD

        Args:
            path: Request path starting with /
            params: Optional query parameters

        Returns:
            Decoded JSON body

        Raises:
            NodeConnectionError: Connection failed, timed out or body was not JSON
            LcdHttpError: The LCD answered with an error status
        """
        url = f"{self.base_url}{path}"

        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.json()

        except requests.exceptions.Timeout as e:
            raise NodeConnectionError(
                f"Request timed out after {self.timeout} seconds", path
            ) from e
        except requests.exceptions.ConnectionError as e:
            raise NodeConnectionError(
                f"Failed to connect to LCD at {self.base_url}", path
            ) from e
        except requests.exceptions.HTTPError as e:
            status_code = e.response.status_code if e.response is not None else 0
            message = e.response.text[:200] if e.response is not None else str(e)
            raise LcdHttpError(message, status_code, path) from e
        except requests.exceptions.RequestException as e:
            raise NodeConnectionError(f"Request failed: {str(e)}", path) from e
        except ValueError as e:
            raise NodeConnectionError(f"Invalid response format: {str(e)}", path) from e

    # Block endpoints

    def get_latest_block(self) -> Dict[str, Any]:
        return self._get('/cosmos/base/tendermint/v1beta1/blocks/latest')

    def get_block(self, height: int) -> Dict[str, Any]:
        return self._get(f'/cosmos/base/tendermint/v1beta1/blocks/{height}')

    def get_block_with_txs(self, height: int) -> Dict[str, Any]:
        return self._get(f'/cosmos/tx/v1beta1/txs/block/{height}')

    def get_latest_block_height(self) -> int:
        """Return the current chain head height."""
        block = self.get_latest_block()
        try:
            return int(block['block']['header']['height'])
        except (KeyError, TypeError, ValueError) as e:
            raise NodeConnectionError(f"Malformed latest block response: {e}") from e

    # Transaction endpoints

    def get_tx(self, tx_hash: str) -> Dict[str, Any]:
        return self._get(f'/cosmos/tx/v1beta1/txs/{tx_hash}')

    def get_txs_by_height(self, height: int) -> List[Dict[str, Any]]:
        """Fetch every transaction response included at a height.

        Pages through the tx search endpoint until the reported total is
        reached. The total is read from ``pagination.total``, or from the
        top-level ``total`` of newer gateways; when neither is reported,
        paging stops at the first short page. A block without transactions
        yields an empty list, including when the gateway answers 400/404 for
        the empty search.

        Args:
            height: Block height

        Returns:
            List of tx_response dicts in block order
        """
        tx_responses: List[Dict[str, Any]] = []
        offset = 0
        total = 0

        while True:
            try:
                page = self._get('/cosmos/tx/v1beta1/txs', params={
                    'events': f'tx.height={height}',
                    'pagination.limit': TX_PAGE_LIMIT,
                    'pagination.offset': offset,
                    'pagination.count_total': 'true',
                    'order_by': 'ORDER_BY_ASC',
                })
            except LcdHttpError as e:
                if e.status_code not in (400, 404):
                    raise
                if not tx_responses:
                    logger.debug(f"No transactions at height {height} (HTTP {e.status_code})")
                    return []
                if total:
                    raise
                # Paged past the end of a search that reported no total
                break

            batch = page.get('tx_responses') or page.get('txs') or []
            tx_responses.extend(batch)

            total = int((page.get('pagination') or {}).get('total') or page.get('total') or 0)
            offset += len(batch)
            if not batch:
                break
            if total and offset >= total:
                break
            # Without a reported total, keep paging while pages come back full
            if not total and len(batch) < TX_PAGE_LIMIT:
                break

        return tx_responses

    # Node info

    def get_node_info(self) -> Dict[str, Any]:
        return self._get('/cosmos/base/tendermint/v1beta1/node_info')

    def get_syncing(self) -> bool:
        return bool(self._get('/cosmos/base/tendermint/v1beta1/syncing').get('syncing'))

    # Module params

    def get_module_params(self, module: str) -> Dict[str, Any]:
        """Fetch params of a Twilight module (bridge, forks, volt, zkos)."""
        return self._get(f'/twilightproject/nyks/{module}/params')

    def close(self) -> None:
        self.session.close()

# Export public interface
__all__ = [
    'LcdClient',
    'LcdError',
    'NodeConnectionError',
    'LcdHttpError',
]
