import unittest
from unittest.mock import Mock, patch

import httpx

from api_service import ApiConfig, SubmissionClient, SubmissionResult
from checkout_flow import (
    REQUIRED_FIELDS,
    REQUIRED_FIELDS_MESSAGE,
    CheckoutStep,
    CheckoutWizard,
    format_time,
)
from track_catalog import get_track


def _complete_profile(wizard: CheckoutWizard) -> None:
    wizard.update_field("fullName", "Asha Rao")
    wizard.update_field("email", "asha@example.com")
    wizard.update_field("phone", "+91 98765 43210")
    wizard.update_field("currentStatus", "Fresher")
    wizard.update_field("careerGoals", "Learn brand management on live briefs")


class ProfileStepTests(unittest.TestCase):
    def setUp(self):
        self.wizard = CheckoutWizard("brand-management")

    def test_starts_on_profile_with_defaults(self):
        self.assertEqual(self.wizard.step, CheckoutStep.PROFILE)
        self.assertEqual(self.wizard.fields["currentStatus"], "Student")
        self.assertEqual(self.wizard.time_left, 300)
        self.assertIsNone(self.wizard.error)

    def test_advances_when_required_fields_present(self):
        _complete_profile(self.wizard)
        self.assertTrue(self.wizard.validate_and_advance())
        self.assertEqual(self.wizard.step, CheckoutStep.REVIEW)
        self.assertIsNone(self.wizard.error)

    def test_stays_on_profile_when_any_required_field_empty(self):
        for field in REQUIRED_FIELDS:
            with self.subTest(field=field):
                wizard = CheckoutWizard("brand-management")
                _complete_profile(wizard)
                wizard.update_field(field, "")
                self.assertFalse(wizard.validate_and_advance())
                self.assertEqual(wizard.step, CheckoutStep.PROFILE)
                self.assertEqual(wizard.error, REQUIRED_FIELDS_MESSAGE)

    def test_whitespace_only_counts_as_empty(self):
        _complete_profile(self.wizard)
        self.wizard.update_field("careerGoals", "   ")
        self.assertFalse(self.wizard.validate_and_advance())

    def test_update_field_clears_error(self):
        self.wizard.validate_and_advance()
        self.assertTrue(self.wizard.error)
        self.wizard.update_field("fullName", "Asha")
        self.assertIsNone(self.wizard.error)

    def test_update_field_rejects_unknown_names(self):
        with self.assertRaises(KeyError):
            self.wizard.update_field("password", "x")

    def test_go_to_step_rejects_unknown_steps(self):
        with self.assertRaises(ValueError):
            self.wizard.go_to_step(7)

    def test_go_to_step_is_unguarded(self):
        self.wizard.go_to_step(3)
        self.assertEqual(self.wizard.step, CheckoutStep.PAYMENT)
        self.wizard.go_to_step(1)
        self.assertEqual(self.wizard.step, CheckoutStep.PROFILE)


class SubmitTests(unittest.TestCase):
    def setUp(self):
        self.wizard = CheckoutWizard("brand-management")
        _complete_profile(self.wizard)
        self.wizard.validate_and_advance()
        self.wizard.go_to_step(CheckoutStep.PAYMENT)

    def test_submit_while_submitting_makes_no_call(self):
        client = Mock()
        self.wizard.submitting = True
        self.assertIsNone(self.wizard.submit(client))
        client.submit.assert_not_called()
        self.assertEqual(self.wizard.step, CheckoutStep.PAYMENT)

    def test_success_moves_to_terminal_step(self):
        client = Mock()
        client.submit.return_value = SubmissionResult(success=True)
        self.wizard.error = "previous failure"

        result = self.wizard.submit(client, hostname="enroll.example.com")

        self.assertTrue(result.success)
        self.assertEqual(self.wizard.step, CheckoutStep.SUCCESS)
        self.assertIsNone(self.wizard.error)
        self.assertFalse(self.wizard.submitting)
        payload = client.submit.call_args.args[0]
        self.assertEqual(payload["track"], "brand-management")
        self.assertEqual(payload["paymentStatus"], "completed")
        self.assertEqual(payload["fullName"], "Asha Rao")
        self.assertEqual(client.submit.call_args.kwargs["hostname"], "enroll.example.com")

    def test_pending_payment_status_is_forwarded(self):
        wizard = CheckoutWizard("brand-management", payment_status="pending")
        client = Mock()
        client.submit.return_value = SubmissionResult(success=True)
        wizard.submit(client)
        self.assertEqual(client.submit.call_args.args[0]["paymentStatus"], "pending")

    def test_ok_response_reaches_success_and_clears_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200))
        client = SubmissionClient(
            ApiConfig(url="https://db.example.com/rest/v1/applications", key="anon"),
            http_client=httpx.Client(transport=transport),
        )
        self.wizard.error = "DB Error: earlier attempt"

        result = self.wizard.submit(client)

        self.assertTrue(result.success)
        self.assertEqual(self.wizard.step, CheckoutStep.SUCCESS)
        self.assertIsNone(self.wizard.error)

    def test_remote_failure_keeps_payment_step_and_surfaces_body(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(500, text="boom"))
        client = SubmissionClient(
            ApiConfig(url="https://db.example.com/rest/v1/applications", key="anon"),
            http_client=httpx.Client(transport=transport),
        )

        result = self.wizard.submit(client)

        self.assertFalse(result.success)
        self.assertIn("boom", self.wizard.error)
        self.assertEqual(self.wizard.step, CheckoutStep.PAYMENT)
        self.assertFalse(self.wizard.submitting)

    def test_failed_submit_can_be_retried(self):
        client = Mock()
        client.submit.side_effect = [
            SubmissionResult(success=False, error="Network error. Check your internet or DB URL."),
            SubmissionResult(success=True),
        ]
        self.wizard.submit(client)
        self.assertEqual(self.wizard.step, CheckoutStep.PAYMENT)
        self.wizard.submit(client)
        self.assertEqual(self.wizard.step, CheckoutStep.SUCCESS)
        self.assertEqual(client.submit.call_count, 2)

    def test_submitting_flag_resets_when_client_raises(self):
        client = Mock()
        client.submit.side_effect = RuntimeError("unexpected")
        with self.assertRaises(RuntimeError):
            self.wizard.submit(client)
        self.assertFalse(self.wizard.submitting)


class CountdownTests(unittest.TestCase):
    def test_counts_down_to_zero_and_stops(self):
        wizard = CheckoutWizard("product-management")
        wizard.go_to_step(CheckoutStep.PAYMENT)
        for _ in range(300):
            wizard.tick()
        self.assertEqual(wizard.time_left, 0)
        self.assertTrue(wizard.expired)
        wizard.tick()
        self.assertEqual(wizard.time_left, 0)

    def test_does_not_tick_outside_payment_step(self):
        wizard = CheckoutWizard("product-management")
        for _ in range(10):
            wizard.tick()
        self.assertEqual(wizard.time_left, 300)

    def test_advance_clock_applies_whole_elapsed_seconds(self):
        wizard = CheckoutWizard("product-management")
        wizard.go_to_step(CheckoutStep.PAYMENT)
        wizard.clock_synced_at = 1000.0

        wizard.advance_clock(1010.5)
        self.assertEqual(wizard.time_left, 290)
        self.assertEqual(wizard.clock_synced_at, 1010.0)

        wizard.advance_clock(9000.0)
        self.assertEqual(wizard.time_left, 0)

    def test_leaving_payment_pauses_without_reset(self):
        wizard = CheckoutWizard("product-management")
        wizard.go_to_step(CheckoutStep.PAYMENT)
        wizard.clock_synced_at = 1000.0
        with patch("checkout_flow.time.time", return_value=1030.0):
            wizard.go_to_step(CheckoutStep.REVIEW)
        self.assertEqual(wizard.time_left, 270)
        self.assertIsNone(wizard.clock_synced_at)

        wizard.advance_clock(5000.0)
        self.assertEqual(wizard.time_left, 270)

        with patch("checkout_flow.time.time", return_value=6000.0):
            wizard.go_to_step(CheckoutStep.PAYMENT)
        self.assertEqual(wizard.clock_synced_at, 6000.0)
        self.assertEqual(wizard.time_left, 270)

    def test_format_time(self):
        self.assertEqual(format_time(300), "5:00")
        self.assertEqual(format_time(65), "1:05")
        self.assertEqual(format_time(0), "0:00")
        self.assertEqual(format_time(-3), "0:00")


class PaymentLinkAndSessionTests(unittest.TestCase):
    def test_payment_link_uses_track_price_and_first_name(self):
        wizard = CheckoutWizard("founders-office")
        wizard.update_field("fullName", "Asha Rao")
        link = wizard.payment_link(get_track("founders-office"))
        self.assertEqual(
            link,
            "upi://pay?pa=industrialimmersion@upi&pn=Industrial%20Immersion"
            "&am=29999&cu=INR&tn=Enroll_Asha",
        )

    def test_session_round_trip_keeps_progress(self):
        wizard = CheckoutWizard("growth-marketing")
        _complete_profile(wizard)
        wizard.validate_and_advance()
        wizard.go_to_step(CheckoutStep.PAYMENT)
        wizard.time_left = 120

        restored = CheckoutWizard.from_dict(wizard.to_dict())

        self.assertEqual(restored.step, CheckoutStep.PAYMENT)
        self.assertEqual(restored.fields, wizard.fields)
        self.assertEqual(restored.time_left, 120)
        self.assertEqual(restored.clock_synced_at, wizard.clock_synced_at)
        self.assertEqual(restored.wizard_id, wizard.wizard_id)

    def test_each_wizard_gets_its_own_id(self):
        self.assertNotEqual(
            CheckoutWizard("growth-marketing").wizard_id,
            CheckoutWizard("growth-marketing").wizard_id,
        )

    def test_state_reports_display_values(self):
        state = CheckoutWizard("growth-marketing").state()
        self.assertEqual(state["step"], 1)
        self.assertEqual(state["step_title"], "Personal Profile")
        self.assertEqual(state["time_left_display"], "5:00")
        self.assertFalse(state["expired"])


if __name__ == "__main__":
    unittest.main()
