"""Frame rejuvenation package.

Unpacks production archives of draft film frames and transcript snippets,
then re-renders each frame with consistent characters through a sequence of
orchestrated generation nodes.
"""

from .pipeline import FrameRejuvenator  # noqa: F401

__all__ = ["FrameRejuvenator"]
