from core.billing.ledger import BillingLedger, ProcessingDay

__all__ = ['BillingLedger', 'ProcessingDay']
