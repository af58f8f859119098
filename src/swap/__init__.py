from .approval import ApprovalGate
from .controller import ControllerState, LoaderPhase, SwapController, SwapInput
from .encoder import DirectTarget, ExecutionEncoder, ProxiedTarget, wrap_proxy_calldata
from .fee_registry import PartnerFeeRegistry, parse_partner_id

__all__ = [
    "ApprovalGate",
    "ControllerState",
    "DirectTarget",
    "ExecutionEncoder",
    "LoaderPhase",
    "PartnerFeeRegistry",
    "ProxiedTarget",
    "SwapController",
    "SwapInput",
    "parse_partner_id",
    "wrap_proxy_calldata",
]
