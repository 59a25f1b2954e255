"""Browser-driving engine (Playwright over the Chrome DevTools Protocol).

Provides the session transport (``transport``), anti-detection launch flags
and init scripts (``stealth``), obstacle handling (``challenge``), composer
interaction (``interaction``) and answer polling (``capture``).

In-page JavaScript lives in ``js/`` and is loaded through ``assets``.
"""
