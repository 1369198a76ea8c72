"""Command line interface for checking LCD connectivity"""
from config import get_settings
from . import LcdClient, NodeConnectionError, LcdHttpError

MODULES = ('bridge', 'forks', 'volt', 'zkos')

def check_lcd():
    """Exercise the endpoints the indexer depends on"""
    settings = get_settings()
    client = LcdClient(settings['lcd_url'], timeout=settings['lcd_timeout'])

    try:
        print(f"\nChecking LCD at {client.base_url}")
        print("-" * 50)

        print("1. Node info:")
        info = client.get_node_info()
        network = (info.get('default_node_info') or {}).get('network')
        print(f"  Network: {network} (expected {settings['chain_id']})")
        print(f"  Syncing: {client.get_syncing()}")

        print("\n2. Latest block:")
        height = client.get_latest_block_height()
        print(f"  Height: {height}")

        print("\n3. Block and transactions at latest height:")
        block = client.get_block(height)
        header = block['block']['header']
        print(f"  Hash: {block['block_id']['hash']}")
        print(f"  Previous: {header['last_block_id']['hash']}")
        txs = client.get_txs_by_height(height)
        print(f"  Transactions: {len(txs)}")
        try:
            with_txs = client.get_block_with_txs(height)
            print(f"  Block txs endpoint: {len(with_txs.get('txs') or [])}")
        except LcdHttpError as e:
            print(f"  Block txs endpoint: {e}")
        if txs:
            tx_hash = txs[0]['txhash']
            found = client.get_tx(tx_hash).get('tx_response') or {}
            print(f"  Lookup {tx_hash}: height {found.get('height')}")

        print("\n4. Module params:")
        for module in MODULES:
            try:
                client.get_module_params(module)
                print(f"  {module}: ok")
            except LcdHttpError as e:
                print(f"  {module}: {e}")

    except NodeConnectionError as e:
        print("\nFailed to reach the LCD:")
        print(f"  {str(e)}")

    except LcdHttpError as e:
        print(f"\nLCD error [{e.status_code}] on {e.path}:")
        print(f"  {str(e)}")

    finally:
        client.close()

if __name__ == "__main__":
    check_lcd()
