import unittest
from datetime import timedelta

from rfq_platform.domain.eligibility import (
    DUPLICATE_QUOTE,
    RFQ_NOT_ACTIVE,
    SUPPLIER_EXCLUDED,
    VISIBILITY_DENIED,
    can_submit,
    ensure_eligible,
    first_veto,
)
from rfq_platform.domain.quote_ledger import submit_quote, withdraw_quote
from rfq_platform.errors import EligibilityError
from tests.helpers.rfq_factory import FIXED_NOW, make_rfq, quote_draft


class EligibilityGateTest(unittest.TestCase):
    def test_published_public_rfq_admits_new_supplier(self) -> None:
        rfq = make_rfq()
        self.assertTrue(can_submit(rfq, "sup-a", FIXED_NOW))
        self.assertIsNone(first_veto(rfq, "sup-a", FIXED_NOW))

    def test_draft_rfq_is_not_active(self) -> None:
        rfq = make_rfq(publish=False)
        self.assertEqual(first_veto(rfq, "sup-a", FIXED_NOW), RFQ_NOT_ACTIVE)

    def test_past_due_rfq_is_not_active(self) -> None:
        rfq = make_rfq()
        after_due = rfq.due_date + timedelta(seconds=1)
        self.assertEqual(first_veto(rfq, "sup-a", after_due), RFQ_NOT_ACTIVE)
        self.assertIsNone(first_veto(rfq, "sup-a", rfq.due_date))

    def test_private_rfq_denies_everyone(self) -> None:
        rfq = make_rfq()
        rfq.visibility = "private"
        self.assertEqual(first_veto(rfq, "sup-a", FIXED_NOW), VISIBILITY_DENIED)

    def test_invited_rfq_admits_only_invited(self) -> None:
        rfq = make_rfq(visibility="invited", invited_suppliers=["sup-a"])
        self.assertIsNone(first_veto(rfq, "sup-a", FIXED_NOW))
        self.assertEqual(first_veto(rfq, "sup-b", FIXED_NOW), VISIBILITY_DENIED)

    def test_excluded_supplier_is_vetoed(self) -> None:
        rfq = make_rfq(excluded_suppliers=["sup-a"])
        self.assertEqual(first_veto(rfq, "sup-a", FIXED_NOW), SUPPLIER_EXCLUDED)

    def test_first_failing_rule_wins(self) -> None:
        rfq = make_rfq(visibility="invited", invited_suppliers=["sup-b"], excluded_suppliers=["sup-a"])
        self.assertEqual(first_veto(rfq, "sup-a", FIXED_NOW), VISIBILITY_DENIED)
        late = rfq.due_date + timedelta(days=1)
        self.assertEqual(first_veto(rfq, "sup-a", late), RFQ_NOT_ACTIVE)

    def test_live_quote_blocks_a_second_submission(self) -> None:
        rfq = make_rfq()
        submit_quote(rfq, quote_draft("sup-a"), FIXED_NOW)
        self.assertEqual(first_veto(rfq, "sup-a", FIXED_NOW), DUPLICATE_QUOTE)
        # Revisions skip the duplicate rule.
        self.assertIsNone(first_veto(rfq, "sup-a", FIXED_NOW, revise=True))

    def test_withdrawn_quote_allows_resubmission(self) -> None:
        rfq = make_rfq()
        submit_quote(rfq, quote_draft("sup-a"), FIXED_NOW)
        withdraw_quote(rfq, "sup-a", rfq.quotes[0].id, "erro de preco", FIXED_NOW)
        self.assertTrue(can_submit(rfq, "sup-a", FIXED_NOW))

    def test_ensure_eligible_raises_with_rule_payload(self) -> None:
        rfq = make_rfq(excluded_suppliers=["sup-a"])
        with self.assertRaises(EligibilityError) as ctx:
            ensure_eligible(rfq, "sup-a", FIXED_NOW)
        self.assertEqual(ctx.exception.rule, SUPPLIER_EXCLUDED)
        self.assertEqual(ctx.exception.code, "supplier_excluded")
        self.assertEqual(ctx.exception.http_status, 422)
        self.assertEqual(ctx.exception.payload["rule"], SUPPLIER_EXCLUDED)


if __name__ == "__main__":
    unittest.main()
