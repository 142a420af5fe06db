"""Bilingual notification templates and the `{key}` renderer.

Each template carries:
- provider_template: the pre-approved WhatsApp template name
- title/body in English and Arabic, with {param} placeholders
- an email subject per locale
"""

import re
from dataclasses import dataclass
from typing import Mapping, Optional

SUPPORTED_LOCALES = ("ar", "en")
FALLBACK_LOCALE = "ar"

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


@dataclass(frozen=True)
class NotificationTemplate:
    provider_template: str
    title_en: str
    title_ar: str
    body_en: str
    body_ar: str
    email_subject_en: str
    email_subject_ar: str


@dataclass(frozen=True)
class RenderedNotification:
    title_en: str
    title_ar: str
    body_en: str
    body_ar: str

    def title(self, locale: str) -> str:
        return self.title_ar if locale == "ar" else self.title_en

    def body(self, locale: str) -> str:
        return self.body_ar if locale == "ar" else self.body_en


TEMPLATES: dict[str, NotificationTemplate] = {
    "event_reminder": NotificationTemplate(
        provider_template="event_reminder",
        title_en="Event Tomorrow",
        title_ar="فعالية غداً",
        body_en="Reminder: {eventName} is happening tomorrow at {time}. Location: {location}",
        body_ar="تذكير: {eventName} غداً الساعة {time}. المكان: {location}",
        email_subject_en="Reminder: {eventName} tomorrow",
        email_subject_ar="تذكير: {eventName} غداً",
    ),
    "gathering_reminder": NotificationTemplate(
        provider_template="gathering_reminder",
        title_en="Gathering Tomorrow",
        title_ar="اجتماع غداً",
        body_en="Reminder: {groupName} meets tomorrow at {time}. Location: {location}",
        body_ar="تذكير: مجموعة {groupName} تجتمع غداً الساعة {time}. المكان: {location}",
        email_subject_en="Reminder: {groupName} gathering tomorrow",
        email_subject_ar="تذكير: اجتماع {groupName} غداً",
    ),
    "visitor_sla_escalation": NotificationTemplate(
        provider_template="visitor_sla_warning",
        title_en="Visitor SLA Breach",
        title_ar="تأخر التواصل مع زائر",
        body_en="Visitor {visitorName} has not been contacted within {slaHours} hours. Please take action.",
        body_ar="الزائر {visitorName} لم يتم التواصل معه خلال {slaHours} ساعة. يرجى اتخاذ إجراء.",
        email_subject_en="Overdue: Visitor {visitorName} not contacted",
        email_subject_ar="تأخر: لم يتم التواصل مع الزائر {visitorName}",
    ),
    "at_risk_member": NotificationTemplate(
        provider_template="at_risk_alert",
        title_en="Member Needs Follow-up",
        title_ar="عضو يحتاج متابعة",
        body_en="{memberName} has been absent from {groupName} for {weeks} consecutive gatherings. Consider reaching out.",
        body_ar="{memberName} غاب عن مجموعة {groupName} لمدة {weeks} اجتماعات متتالية. يرجى التواصل.",
        email_subject_en="{memberName} needs follow-up",
        email_subject_ar="{memberName} يحتاج متابعة",
    ),
    "visitor_assigned": NotificationTemplate(
        provider_template="visitor_assigned",
        title_en="New Visitor Assigned",
        title_ar="زائر جديد مُسنَد إليك",
        body_en="New visitor {visitorName} has been assigned to you. Please reach out within {slaHours} hours.",
        body_ar="تم إسناد الزائر {visitorName} إليك. يرجى التواصل خلال {slaHours} ساعة.",
        email_subject_en="New visitor assigned: {visitorName}",
        email_subject_ar="زائر جديد مُسنَد إليك: {visitorName}",
    ),
    "visitor_welcome": NotificationTemplate(
        provider_template="visitor_welcome",
        title_en="Welcome!",
        title_ar="أهلاً وسهلاً!",
        body_en="Welcome to {churchName}! We are glad you visited us. One of our team members will contact you soon.",
        body_ar="أهلاً بك في {churchName}! يسعدنا زيارتك. سيتواصل معك أحد أعضاء فريقنا قريباً.",
        email_subject_en="Welcome to {churchName}!",
        email_subject_ar="أهلاً بك في {churchName}!",
    ),
    "general": NotificationTemplate(
        provider_template="general_message",
        title_en="{title}",
        title_ar="{title}",
        body_en="{body}",
        body_ar="{body}",
        email_subject_en="{title}",
        email_subject_ar="{title}",
    ),
}


def interpolate(template: str, params: Mapping[str, object]) -> str:
    """Replace every {key} with params[key]; unknown keys are left as-is."""
    def _sub(match: re.Match) -> str:
        key = match.group(1)
        if key in params and params[key] is not None:
            return str(params[key])
        return match.group(0)

    return _PLACEHOLDER.sub(_sub, template or "")


def get_template(type: str) -> NotificationTemplate:
    return TEMPLATES.get(type, TEMPLATES["general"])


def render_for(type: str, params: Mapping[str, object]) -> RenderedNotification:
    template = get_template(type)
    return RenderedNotification(
        title_en=interpolate(template.title_en, params),
        title_ar=interpolate(template.title_ar, params),
        body_en=interpolate(template.body_en, params),
        body_ar=interpolate(template.body_ar, params),
    )


def email_subject(type: str, locale: str, params: Mapping[str, object]) -> str:
    template = get_template(type)
    subject = template.email_subject_ar if locale == "ar" else template.email_subject_en
    return interpolate(subject, params)


def resolve_locale(preferred: Optional[str], church_default: Optional[str]) -> str:
    """Recipient preference, then church default, then Arabic."""
    for candidate in (preferred, church_default):
        if candidate:
            code = candidate.lower().split("-")[0]
            if code in SUPPORTED_LOCALES:
                return code
    return FALLBACK_LOCALE
