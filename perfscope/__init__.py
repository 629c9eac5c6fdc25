"""
perfscope

Performance trace analysis for Firefox Profiler and Chrome DevTools
profiles: bottlenecks, thread contention, parallel scaling, call trees and
operation timing between markers.
"""

from .loader import BrowserType, ProfileLoadError, load_profile, profile_from_dict
from .profile_types import Profile

__version__ = "1.0.0"

__all__ = [
    'BrowserType',
    'Profile',
    'ProfileLoadError',
    'load_profile',
    'profile_from_dict',
    '__version__',
]
