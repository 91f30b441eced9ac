from core.payments.gateway import PaymentGateway, RazorpayGateway, GatewayOrder, OrderStatus
from core.payments.reconciler import GatewayReconciler, ReconcileOutcome, SweepResult
from core.payments.wallet import WalletService, TopUpOrder, TransactionPage

__all__ = [
    'PaymentGateway',
    'RazorpayGateway',
    'GatewayOrder',
    'OrderStatus',
    'GatewayReconciler',
    'ReconcileOutcome',
    'SweepResult',
    'WalletService',
    'TopUpOrder',
    'TransactionPage',
]
