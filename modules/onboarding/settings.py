"""Immutable onboarding settings resolved from the runtime config."""

from __future__ import annotations

from dataclasses import dataclass

from shared import config as shared_config

__all__ = ["OnboardingSettings", "load_settings"]


@dataclass(frozen=True, slots=True)
class OnboardingSettings:
    community_name: str = "KCD Community on Discord"
    support_email: str = "team@kentcdodds.com"
    conduct_url: str = "https://kentcdodds.com/conduct"
    conduct_email: str = "team@kentcdodds.com"
    welcome_gif_url: str = "https://media.giphy.com/media/MDxjbPCg6DGf8JclbR/giphy.gif"
    office_hours_url: str = "https://kcd.im/office-hours"
    member_role: str = "Member"
    unconfirmed_role: str = "Unconfirmed Member"
    live_stream_role: str = "Notify: Kent Live"
    office_hours_role: str = "Notify: Office Hours"
    welcome_category: str = "Welcome!"
    channel_prefix: str = "👋-welcome-"
    introductions_channel: str = "👶-introductions"
    live_stream_channel: str = "💻-kent-live"
    office_hours_channel: str = "🏫-office-hours"


def load_settings() -> OnboardingSettings:
    """Snapshot the onboarding-related config keys."""

    return OnboardingSettings(
        community_name=shared_config.get_community_name(),
        support_email=shared_config.get_support_email(),
        conduct_url=shared_config.get_conduct_url(),
        conduct_email=shared_config.get_conduct_email(),
        welcome_gif_url=shared_config.get_welcome_gif_url(),
        office_hours_url=shared_config.get_office_hours_url(),
        member_role=shared_config.get_member_role(),
        unconfirmed_role=shared_config.get_unconfirmed_role(),
        live_stream_role=shared_config.get_live_stream_role(),
        office_hours_role=shared_config.get_office_hours_role(),
        welcome_category=shared_config.get_welcome_category(),
        channel_prefix=shared_config.get_welcome_channel_prefix(),
        introductions_channel=shared_config.get_introductions_channel(),
        live_stream_channel=shared_config.get_live_stream_channel(),
        office_hours_channel=shared_config.get_office_hours_channel(),
    )
