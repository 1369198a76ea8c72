"""Tests for the LCD client."""
from unittest.mock import MagicMock, patch

import pytest
import requests

from lcd import LcdClient, LcdHttpError, NodeConnectionError

def response(body=None, status=200):
    resp = MagicMock()
    resp.status_code = status
    resp.text = 'error body'
    resp.json.return_value = body
    if status >= 400:
        resp.raise_for_status.side_effect = requests.exceptions.HTTPError(response=resp)
    return resp

@pytest.fixture
def session():
    return MagicMock()

@pytest.fixture
def client(session):
    return LcdClient('https://lcd.example/', timeout=5, session=session)

def test_latest_block_height(client, session):
    session.get.return_value = response({'block': {'header': {'height': '12345'}}})

    assert client.get_latest_block_height() == 12345
    session.get.assert_called_once_with(
        'https://lcd.example/cosmos/base/tendermint/v1beta1/blocks/latest',
        params=None,
        timeout=5
    )

def test_malformed_latest_block(client, session):
    session.get.return_value = response({'block': {}})

    with pytest.raises(NodeConnectionError):
        client.get_latest_block_height()

def test_txs_by_height_pages_until_total(client, session):
    session.get.side_effect = [
        response({'tx_responses': [{'txhash': str(i)} for i in range(100)], 'pagination': {'total': '130'}}),
        response({'tx_responses': [{'txhash': str(i)} for i in range(100, 130)], 'pagination': {'total': '130'}}),
    ]

    txs = client.get_txs_by_height(77)

    assert [tx['txhash'] for tx in txs] == [str(i) for i in range(130)]
    offsets = [c.kwargs['params']['pagination.offset'] for c in session.get.call_args_list]
    assert offsets == [0, 100]
    assert session.get.call_args.kwargs['params']['events'] == 'tx.height=77'

@pytest.mark.parametrize('status', [400, 404])
def test_empty_height_answers_empty_list(client, session, status):
    session.get.return_value = response(status=status)

    assert client.get_txs_by_height(5) == []

def test_server_error_raises_http_error(client, session):
    session.get.return_value = response(status=500)

    with pytest.raises(LcdHttpError) as excinfo:
        client.get_block(5)

    assert excinfo.value.status_code == 500
    assert excinfo.value.path == '/cosmos/base/tendermint/v1beta1/blocks/5'
    assert session.get.call_count == 1

@patch('time.sleep')
def test_connection_errors_are_retried(sleep, client, session):
    session.get.side_effect = requests.exceptions.ConnectionError("refused")

    with pytest.raises(NodeConnectionError):
        client.get_block(5)

    assert session.get.call_count == 3

@patch('time.sleep')
def test_retry_recovers(sleep, client, session):
    session.get.side_effect = [
        requests.exceptions.Timeout("slow"),
        response({'block_id': {'hash': 'H'}}),
    ]

    assert client.get_block(5) == {'block_id': {'hash': 'H'}}

@patch('time.sleep')
def test_invalid_json(sleep, client, session):
    bad = response()
    bad.json.side_effect = ValueError("Expecting value")
    session.get.return_value = bad

    with pytest.raises(NodeConnectionError) as excinfo:
        client.get_node_info()

    assert 'Invalid response format' in str(excinfo.value)

def test_module_params_path(client, session):
    session.get.return_value = response({'params': {}})

    client.get_module_params('bridge')

    assert session.get.call_args.args[0] == 'https://lcd.example/twilightproject/nyks/bridge/params'

def test_pages_with_top_level_total(client, session):
    session.get.side_effect = [
        response({'tx_responses': [{'txhash': str(i)} for i in range(100)], 'total': '150'}),
        response({'tx_responses': [{'txhash': str(i)} for i in range(100, 150)], 'total': '150'}),
    ]

    assert len(client.get_txs_by_height(9)) == 150
    assert session.get.call_count == 2

def test_pages_while_full_without_total(client, session):
    session.get.side_effect = [
        response({'tx_responses': [{'txhash': str(i)} for i in range(100)]}),
        response({'tx_responses': [{'txhash': str(i)} for i in range(100, 120)]}),
    ]

    assert len(client.get_txs_by_height(9)) == 120
    assert session.get.call_count == 2

def test_paging_past_end_without_total(client, session):
    session.get.side_effect = [
        response({'tx_responses': [{'txhash': str(i)} for i in range(100)]}),
        response(status=400),
    ]

    assert len(client.get_txs_by_height(9)) == 100

def test_block_with_txs_and_tx_lookup(client, session):
    session.get.return_value = response({'txs': []})

    client.get_block_with_txs(12)
    assert session.get.call_args.args[0] == 'https://lcd.example/cosmos/tx/v1beta1/txs/block/12'

    client.get_tx('ABC')
    assert session.get.call_args.args[0] == 'https://lcd.example/cosmos/tx/v1beta1/txs/ABC'
