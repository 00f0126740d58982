"""
Provider Risk Engine - Verification Profile.

Derivations over a provider's KYC and payment onboarding
state: document statuses, missing documents, KYC completion
percentage and review age.
"""

from dataclasses import dataclass
from typing import Any, Dict, List

from .types import (
    DocumentStatus,
    KycStatus,
    OnboardingStatus,
    VerificationProfile,
)


IDENTITY_DOCUMENT = "Identity Document"
BUSINESS_DOCUMENT = "Business Document"
BANK_VERIFICATION = "Bank Account Verification"

KYC_STEPS = 4


def document_status(profile: VerificationProfile, present: bool) -> DocumentStatus:
    """Status of an uploaded KYC document, following the overall KYC decision."""
    if not present:
        return DocumentStatus.MISSING
    if profile.kyc_status == KycStatus.VERIFIED:
        return DocumentStatus.VERIFIED
    if profile.kyc_status == KycStatus.REJECTED:
        return DocumentStatus.REJECTED
    return DocumentStatus.PENDING


def bank_status(profile: VerificationProfile) -> DocumentStatus:
    """Bank verification is complete once charges and payouts are both enabled."""
    if not profile.payment_account_connected:
        return DocumentStatus.MISSING
    if profile.charges_enabled and profile.payouts_enabled:
        return DocumentStatus.VERIFIED
    return DocumentStatus.PENDING


def onboarding_status(profile: VerificationProfile) -> OnboardingStatus:
    if not profile.payment_account_connected:
        return OnboardingStatus.NOT_STARTED
    if profile.charges_enabled and profile.payouts_enabled:
        return OnboardingStatus.COMPLETED
    return OnboardingStatus.IN_PROGRESS


def missing_documents(profile: VerificationProfile) -> List[str]:
    """Names of missing verification documents, in a fixed order."""
    missing = []
    if not profile.identity_document_present:
        missing.append(IDENTITY_DOCUMENT)
    if not profile.business_document_present:
        missing.append(BUSINESS_DOCUMENT)
    if not profile.payment_account_connected:
        missing.append(BANK_VERIFICATION)
    return missing


def kyc_completion_percentage(profile: VerificationProfile) -> int:
    """
    Share of the four KYC steps done: submission started,
    identity document, business document, payment account.
    """
    completed = sum([
        profile.kyc_status != KycStatus.NOT_STARTED,
        profile.identity_document_present,
        profile.business_document_present,
        profile.payment_account_connected,
    ])
    return round(completed / KYC_STEPS * 100)


def is_review_stale(profile: VerificationProfile, max_days: int) -> bool:
    """True when a submission has waited for review longer than max_days."""
    return (
        profile.kyc_status == KycStatus.PENDING_REVIEW
        and profile.kyc_age_days > max_days
    )


@dataclass(frozen=True)
class VerificationSummary:
    """Presentation view of a verification profile at a point in time."""

    kyc_status: KycStatus
    identity: DocumentStatus
    business: DocumentStatus
    bank: DocumentStatus
    missing_documents: List[str]
    completion_percentage: int
    onboarding: OnboardingStatus
    kyc_age_days: int

    @classmethod
    def from_profile(cls, profile: VerificationProfile) -> "VerificationSummary":
        return cls(
            kyc_status=profile.kyc_status,
            identity=document_status(profile, profile.identity_document_present),
            business=document_status(profile, profile.business_document_present),
            bank=bank_status(profile),
            missing_documents=missing_documents(profile),
            completion_percentage=kyc_completion_percentage(profile),
            onboarding=onboarding_status(profile),
            kyc_age_days=profile.kyc_age_days,
        )

    @property
    def all_verified(self) -> bool:
        return all(
            status == DocumentStatus.VERIFIED
            for status in (self.identity, self.business, self.bank)
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kyc_status": self.kyc_status.value,
            "document_verification_status": {
                "identity": self.identity.value,
                "business": self.business.value,
                "bank": self.bank.value,
            },
            "missing_documents": list(self.missing_documents),
            "kyc_completion_percentage": self.completion_percentage,
            "payment_onboarding_status": self.onboarding.value,
            "kyc_age": self.kyc_age_days,
        }
