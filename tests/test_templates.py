from datetime import datetime, timezone

from app.core.clock import as_utc, format_local_time
from app.core.phone import normalize_phone
from app.application.services.templates import (
    TEMPLATES,
    email_subject,
    get_template,
    interpolate,
    render_for,
    resolve_locale,
)


class TestInterpolate:
    def test_replaces_known_keys(self):
        assert interpolate("Hi {name}, see you at {time}", {"name": "Rami", "time": "19:00"}) == "Hi Rami, see you at 19:00"

    def test_unknown_keys_are_left_verbatim(self):
        assert interpolate("Hi {name} {missing}", {"name": "Rami"}) == "Hi Rami {missing}"

    def test_none_values_are_left_verbatim(self):
        assert interpolate("At {location}", {"location": None}) == "At {location}"

    def test_non_string_values_are_stringified(self):
        assert interpolate("{weeks} weeks", {"weeks": 3}) == "3 weeks"

    def test_empty_template(self):
        assert interpolate(None, {"a": "b"}) == ""


class TestTemplates:
    def test_every_template_has_both_locales(self):
        for template in TEMPLATES.values():
            assert template.title_ar and template.title_en
            assert template.body_ar and template.body_en
            assert template.provider_template

    def test_unknown_type_falls_back_to_general(self):
        assert get_template("no_such_type") is TEMPLATES["general"]

    def test_render_for_fills_both_languages(self):
        rendered = render_for("at_risk_member", {"memberName": "Sara", "groupName": "Youth", "weeks": "2"})
        assert "Sara" in rendered.body_en and "Youth" in rendered.body_en
        assert "Sara" in rendered.body_ar
        assert rendered.body("ar") == rendered.body_ar
        assert rendered.title("en") == rendered.title_en

    def test_email_subject_is_localized(self):
        assert email_subject("visitor_welcome", "en", {"churchName": "Grace"}) == "Welcome to Grace!"
        assert "Grace" in email_subject("visitor_welcome", "ar", {"churchName": "Grace"})


class TestResolveLocale:
    def test_recipient_preference_wins(self):
        assert resolve_locale("en", "ar") == "en"

    def test_church_default_when_no_preference(self):
        assert resolve_locale(None, "en") == "en"

    def test_region_suffix_is_ignored(self):
        assert resolve_locale("en-US", None) == "en"

    def test_unsupported_falls_back_to_arabic(self):
        assert resolve_locale("fr", None) == "ar"
        assert resolve_locale(None, None) == "ar"


class TestPhone:
    def test_strips_formatting(self):
        assert normalize_phone("+962 79 123-4567") == "962791234567"

    def test_drops_international_prefix(self):
        assert normalize_phone("00962791234567") == "962791234567"

    def test_rejects_garbage(self):
        assert normalize_phone("1234") is None
        assert normalize_phone("N/A") is None
        assert normalize_phone(None) is None
        assert normalize_phone("1" * 16) is None


class TestClock:
    def test_as_utc_attaches_tz_to_naive(self):
        value = as_utc(datetime(2026, 1, 1, 10, 0))
        assert value.tzinfo is not None
        assert value.hour == 10

    def test_format_local_time_unknown_zone_uses_utc(self):
        assert format_local_time(datetime(2026, 1, 1, 10, 5, tzinfo=timezone.utc), "Not/AZone") == "10:05"
