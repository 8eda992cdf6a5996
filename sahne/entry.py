"""mitmproxy script entry point.

    mitmdump -s sahne/entry.py --set sahne_rules=rules.yaml

`SAHNE_RULES_FILE` is used when the option is not given.
"""
from typing import Any, List

from sahne.core.main import InterceptorAddon

addons: List[Any] = [
    InterceptorAddon()
]
