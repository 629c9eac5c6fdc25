"""
Single-profile overview (what the `summary` command and tool report).
"""

from enum import Enum
from typing import Union

from ..profile_types import Profile
from .types import ProfileOverview


def build_profile_summary(profile: Profile, browser: Union[str, Enum] = "unknown") -> ProfileOverview:
    """Environment, capture settings and headline counts of a profile."""
    meta = profile.meta
    browser_type = browser.value if isinstance(browser, Enum) else str(browser or "unknown")

    return ProfileOverview(
        browser_type=browser_type,
        duration_seconds=profile.duration_seconds,
        platform=meta.platform,
        os_cpu=meta.oscpu,
        product=meta.product,
        build_id=meta.app_build_id,
        cpu_name=meta.cpu_name,
        physical_cpus=meta.physical_cpus,
        logical_cpus=meta.logical_cpus,
        thread_count=len(profile.threads),
        main_thread_count=len(profile.main_threads()),
        extension_count=profile.extension_count,
        extensions=profile.get_extensions(),
        features=list(meta.configuration.features),
        categories=profile.category_names(),
        total_markers=sum(t.markers.length for t in profile.threads),
        total_samples=sum(t.samples.length for t in profile.threads),
    )
