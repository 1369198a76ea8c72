"""Message type constants and shared helpers for the Twilight decoders."""
from typing import Any, Dict, Optional

TYPE_FIELD = '@type'

# Bridge module (17 types)
CONFIRM_BTC_DEPOSIT = '/twilightproject.nyks.bridge.MsgConfirmBtcDeposit'
REGISTER_BTC_DEPOSIT_ADDRESS = '/twilightproject.nyks.bridge.MsgRegisterBtcDepositAddress'
REGISTER_RESERVE_ADDRESS = '/twilightproject.nyks.bridge.MsgRegisterReserveAddress'
BOOTSTRAP_FRAGMENT = '/twilightproject.nyks.bridge.MsgBootstrapFragment'
WITHDRAW_BTC_REQUEST = '/twilightproject.nyks.bridge.MsgWithdrawBtcRequest'
SWEEP_PROPOSAL = '/twilightproject.nyks.bridge.MsgSweepProposal'
WITHDRAW_TX_SIGNED = '/twilightproject.nyks.bridge.MsgWithdrawTxSigned'
WITHDRAW_TX_FINAL = '/twilightproject.nyks.bridge.MsgWithdrawTxFinal'
CONFIRM_BTC_WITHDRAW = '/twilightproject.nyks.bridge.MsgConfirmBtcWithdraw'
SIGN_REFUND = '/twilightproject.nyks.bridge.MsgSignRefund'
BROADCAST_TX_SWEEP = '/twilightproject.nyks.bridge.MsgBroadcastTxSweep'
SIGN_SWEEP = '/twilightproject.nyks.bridge.MsgSignSweep'
PROPOSE_REFUND_HASH = '/twilightproject.nyks.bridge.MsgProposeRefundHash'
UNSIGNED_TX_SWEEP = '/twilightproject.nyks.bridge.MsgUnsignedTxSweep'
UNSIGNED_TX_REFUND = '/twilightproject.nyks.bridge.MsgUnsignedTxRefund'
BROADCAST_TX_REFUND = '/twilightproject.nyks.bridge.MsgBroadcastTxRefund'
PROPOSE_SWEEP_ADDRESS = '/twilightproject.nyks.bridge.MsgProposeSweepAddress'

# Forks module (2 types)
SET_DELEGATE_ADDRESSES = '/twilightproject.nyks.forks.MsgSetDelegateAddresses'
SEEN_BTC_CHAIN_TIP = '/twilightproject.nyks.forks.MsgSeenBtcChainTip'

# Volt module (2 types)
SIGNER_APPLICATION = '/twilightproject.nyks.volt.MsgSignerApplication'
ACCEPT_SIGNERS = '/twilightproject.nyks.volt.MsgAcceptSigners'

# zkOS module (2 types)
TRANSFER_TX = '/twilightproject.nyks.zkos.MsgTransferTx'
MINT_BURN_TRADING_BTC = '/twilightproject.nyks.zkos.MsgMintBurnTradingBtc'

MESSAGE_TYPES: Dict[str, str] = {
    name: value for name, value in globals().items()
    if isinstance(value, str) and value.startswith('/twilightproject.nyks.')
}

# Reverse mapping for easy lookup
MESSAGE_TYPE_NAMES: Dict[str, str] = {value: name for name, value in MESSAGE_TYPES.items()}

# Module namespaces, matched as ".<module>." inside the type URL
BRIDGE = 'bridge'
FORKS = 'forks'
VOLT = 'volt'
ZKOS = 'zkos'
MODULES = (BRIDGE, FORKS, VOLT, ZKOS)


def get_module_from_type(msg_type: str) -> Optional[str]:
    """Return the Twilight module a type URL belongs to, or None."""
    for module in MODULES:
        if f'.{module}.' in msg_type:
            return module
    return None


def to_int(value: Any) -> int:
    """Coerce a numeric string to an int; missing or empty means 0.

    Python ints are arbitrary precision, so token amounts beyond 64 bits are
    kept exactly. Anything that is not an integer literal raises ValueError.
    """
    if value is None or value == '':
        return 0
    if isinstance(value, bool):
        raise ValueError(f"Expected a numeric string, got boolean {value!r}")
    if isinstance(value, int):
        return value
    return int(str(value).strip(), 10)


def passthrough(msg: Dict[str, Any]) -> Dict[str, Any]:
    """Copy every field of a raw message except the type discriminator."""
    return {key: value for key, value in msg.items() if key != TYPE_FIELD}
