"""
Verification Profile Tests.
"""

import pytest

from provider_risk import (
    DocumentStatus,
    KycStatus,
    OnboardingStatus,
    VerificationSummary,
)
from provider_risk.verification import (
    bank_status,
    document_status,
    is_review_stale,
    kyc_completion_percentage,
    missing_documents,
    onboarding_status,
)


class TestDocumentStatus:
    """Document status follows the overall KYC decision."""

    @pytest.mark.parametrize("kyc_status,expected", [
        (KycStatus.VERIFIED, DocumentStatus.VERIFIED),
        (KycStatus.REJECTED, DocumentStatus.REJECTED),
        (KycStatus.PENDING_REVIEW, DocumentStatus.PENDING),
        (KycStatus.IN_PROGRESS, DocumentStatus.PENDING),
    ])
    def test_present_document(self, make_profile, kyc_status, expected):
        profile = make_profile(kyc_status=kyc_status)

        assert document_status(profile, True) == expected

    def test_missing_document(self, make_profile):
        assert document_status(make_profile(), False) == DocumentStatus.MISSING

    def test_bank_status(self, make_profile):
        assert bank_status(make_profile()) == DocumentStatus.VERIFIED
        assert bank_status(make_profile(payouts_enabled=False)) == DocumentStatus.PENDING
        assert bank_status(make_profile(payment_account_connected=False)) == DocumentStatus.MISSING


class TestOnboarding:
    """Payment onboarding progress."""

    def test_not_connected(self, make_profile):
        profile = make_profile(payment_account_connected=False, charges_enabled=False,
                               payouts_enabled=False)

        assert onboarding_status(profile) == OnboardingStatus.NOT_STARTED

    def test_partially_enabled(self, make_profile):
        assert onboarding_status(make_profile(charges_enabled=False)) == OnboardingStatus.IN_PROGRESS

    def test_completed(self, make_profile):
        assert onboarding_status(make_profile()) == OnboardingStatus.COMPLETED


class TestMissingDocuments:
    """Missing documents are listed in a fixed order."""

    def test_none_missing(self, make_profile):
        assert missing_documents(make_profile()) == []

    def test_all_missing(self, make_profile):
        profile = make_profile(
            identity_document_present=False,
            business_document_present=False,
            payment_account_connected=False,
        )

        assert missing_documents(profile) == [
            "Identity Document",
            "Business Document",
            "Bank Account Verification",
        ]

    def test_only_business_missing(self, make_profile):
        assert missing_documents(make_profile(business_document_present=False)) == ["Business Document"]


class TestCompletionPercentage:
    """Four KYC steps, rounded percentage."""

    def test_nothing_done(self, make_profile):
        profile = make_profile(
            kyc_status=KycStatus.NOT_STARTED,
            identity_document_present=False,
            business_document_present=False,
            payment_account_connected=False,
        )

        assert kyc_completion_percentage(profile) == 0

    def test_half_done(self, make_profile):
        profile = make_profile(
            kyc_status=KycStatus.IN_PROGRESS,
            business_document_present=False,
            payment_account_connected=False,
        )

        assert kyc_completion_percentage(profile) == 50

    def test_everything_done(self, make_profile):
        assert kyc_completion_percentage(make_profile()) == 100


class TestReviewStaleness:
    """Pending reviews older than the limit are stale."""

    def test_pending_over_limit(self, make_profile):
        profile = make_profile(kyc_status=KycStatus.PENDING_REVIEW, kyc_age_days=31)

        assert is_review_stale(profile, 30)

    def test_pending_at_limit(self, make_profile):
        profile = make_profile(kyc_status=KycStatus.PENDING_REVIEW, kyc_age_days=30)

        assert not is_review_stale(profile, 30)

    def test_only_pending_reviews_go_stale(self, make_profile):
        profile = make_profile(kyc_status=KycStatus.VERIFIED, kyc_age_days=400)

        assert not is_review_stale(profile, 30)


class TestVerificationSummary:
    """Tests for VerificationSummary."""

    def test_fully_verified(self, make_profile):
        summary = VerificationSummary.from_profile(make_profile(kyc_age_days=12))

        assert summary.all_verified
        assert summary.to_dict() == {
            "kyc_status": "verified",
            "document_verification_status": {
                "identity": "verified",
                "business": "verified",
                "bank": "verified",
            },
            "missing_documents": [],
            "kyc_completion_percentage": 100,
            "payment_onboarding_status": "completed",
            "kyc_age": 12,
        }

    def test_pending_submission(self, make_profile):
        profile = make_profile(
            kyc_status=KycStatus.PENDING_REVIEW,
            business_document_present=False,
            payouts_enabled=False,
        )

        summary = VerificationSummary.from_profile(profile)

        assert not summary.all_verified
        assert summary.identity == DocumentStatus.PENDING
        assert summary.business == DocumentStatus.MISSING
        assert summary.bank == DocumentStatus.PENDING
        assert summary.missing_documents == ["Business Document"]
        assert summary.onboarding == OnboardingStatus.IN_PROGRESS
