"""FileMaker script invocation over OData.

Scripts are OData actions named ``Script.<name>``, bound to a table
(``/Orders/Script.Recalc``) or to the database (``/Script.Recalc``).
The parameter travels in the JSON body as ``scriptParameterValue``; FM
answers with ``{"scriptResult": {"code": 0, "resultParameter": "..."}}``.
"""

import logging
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScriptInvocation:
    """A script to run. ``table=None`` runs it at database level."""

    table: str | None
    script: str
    param: str | None = None

    def body(self) -> dict[str, Any] | None:
        if self.param is None:
            return None
        return {"scriptParameterValue": self.param}


def extract_script_result(result: Any) -> str | None:
    """Extract the result text from a script call response.

    Args:
        result: Decoded JSON response from a Script.<name> call.

    Returns:
        The script's result parameter, or None if the response is empty.
    """
    if not isinstance(result, dict):
        return None
    script_result = result.get("scriptResult", "")
    text: str = ""
    if isinstance(script_result, dict):
        code = script_result.get("code")
        if code not in (None, 0, "0"):
            logger.warning("Script returned error code %s", code)
        text = str(script_result.get("resultParameter", "") or "")
    elif isinstance(script_result, str):
        text = script_result
    if not text:
        text = str(result.get("value", "") or "")
    return text or None
