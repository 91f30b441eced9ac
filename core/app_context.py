from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import sessionmaker

from core.billing.ledger import BillingLedger
from core.config_loader import AppConfig
from core.feedback.service import PreferenceFeedbackService
from core.llm.interfaces import ScoringOracle, InsightSynthesizer
from core.llm.openai_service import OpenAIService
from core.matcher.actions import MatchActionService
from core.matcher.classifier import MatchPersister
from core.matcher.eligibility import EligibilitySelector, MatchDeduplicator
from core.matcher.scorer import BoundedScorer
from core.payments.gateway import PaymentGateway, RazorpayGateway
from core.payments.reconciler import GatewayReconciler
from core.payments.wallet import WalletService
from database.database import get_session_factory
from notification.service import Notifier, NotificationService


@dataclass
class AppContext:
    """Application context container that holds all wired dependencies.

    Every component receives its collaborators from here; nothing reaches
    for a global client. DB access goes through UnitOfWork(session_factory)
    inside each operation.
    """
    config: AppConfig
    session_factory: sessionmaker
    oracle: ScoringOracle
    synthesizer: InsightSynthesizer
    gateway: PaymentGateway
    selector: EligibilitySelector
    deduplicator: MatchDeduplicator
    scorer: BoundedScorer
    persister: MatchPersister
    ledger: BillingLedger
    reconciler: GatewayReconciler
    wallet: WalletService
    feedback: PreferenceFeedbackService
    actions: MatchActionService
    notifier: Optional[Notifier] = None

    @classmethod
    def build(
        cls,
        config: AppConfig,
        session_factory: Optional[sessionmaker] = None,
        oracle: Optional[ScoringOracle] = None,
        synthesizer: Optional[InsightSynthesizer] = None,
        gateway: Optional[PaymentGateway] = None,
        notifier: Optional[Notifier] = None
    ) -> "AppContext":
        """Build an AppContext from config.

        Any collaborator passed in explicitly replaces the default
        implementation (tests pass fakes here).
        """
        session_factory = session_factory or get_session_factory(config.database.url)

        if oracle is None or synthesizer is None:
            llm_service = cls._build_llm_service(config)
            oracle = oracle or llm_service
            synthesizer = synthesizer or llm_service

        gateway = gateway or RazorpayGateway(config.gateway)

        if notifier is None and config.notifications.enabled:
            notifier = NotificationService(
                base_url=config.notifications.base_url,
                top_matches=config.notifications.top_matches,
            )

        fee_cents = config.billing.fee_cents
        reconciler = GatewayReconciler(session_factory, gateway, config.gateway)
        feedback = PreferenceFeedbackService(session_factory, synthesizer)

        return cls(
            config=config,
            session_factory=session_factory,
            oracle=oracle,
            synthesizer=synthesizer,
            gateway=gateway,
            selector=EligibilitySelector(session_factory, config.matching, fee_cents),
            deduplicator=MatchDeduplicator(session_factory),
            scorer=BoundedScorer(oracle, config.matching.pool_width),
            persister=MatchPersister(session_factory),
            ledger=BillingLedger(session_factory, config.billing),
            reconciler=reconciler,
            wallet=WalletService(session_factory, gateway, reconciler, config.gateway),
            feedback=feedback,
            actions=MatchActionService(session_factory, feedback),
            notifier=notifier,
        )

    @staticmethod
    def _build_llm_service(config: AppConfig) -> OpenAIService:
        llm_config = config.llm
        return OpenAIService(
            api_key=llm_config.api_key,
            base_url=llm_config.base_url,
            model=llm_config.model,
            temperature=llm_config.temperature,
            request_timeout_seconds=llm_config.request_timeout_seconds,
        )

    def close(self) -> None:
        self.feedback.shutdown(wait=True)
