"""Tests for the challenge completion page."""

from uuid import uuid4

from pincer_payments.api.callback_page import render_challenge_page
from pincer_payments.services.payments import ChallengeCompletion


def test_page_escapes_values_from_the_gateway() -> None:
    hostile = "</script><script>alert(1)</script>"
    completion = ChallengeCompletion(
        session_id=uuid4(),
        approved=False,
        result={"message": hostile, "isoCode": "05"},
    )

    page = render_challenge_page(
        completion, "https://www.pincerweb.com", "https://shop.test/pay"
    )

    assert hostile not in page
    assert "\\u003c/script\\u003e" in page
    assert page.count("<script>") == 1


def test_page_redirect_carries_only_session_and_coarse_result() -> None:
    session_id = uuid4()
    completion = ChallengeCompletion(
        session_id=session_id,
        approved=True,
        result={"authorizationCode": "AUTH1", "azulOrderId": "ORD1"},
    )

    page = render_challenge_page(
        completion, "https://www.pincerweb.com", "https://shop.test/pay?tenant=1"
    )

    expected_href = (
        f"https://shop.test/pay?tenant=1&amp;session={session_id}&amp;result=approved"
    )
    assert f'href="{expected_href}"' in page
    assert (
        f'"https://shop.test/pay?tenant=1\\u0026session={session_id}'
        "\\u0026result=approved\"" in page
    )
    assert "AUTH1" not in expected_href
    assert 'postMessage(message, "https://www.pincerweb.com")' in page


def test_page_escapes_hostile_origin_setting() -> None:
    completion = ChallengeCompletion(session_id=uuid4(), approved=False, result={})

    page = render_challenge_page(completion, "'); alert(1); ('", "https://shop.test")

    assert "'); alert(1); ('" not in page
