"""Process-isolated sandbox worker.

Reads one JSON request from stdin: {"candidate": str, "policy": {...}}
and writes one JSON verdict to stdout: {"reason": str|null, "detail": str|null}.
Shares no memory with the orchestrator; the candidate is never executed.
"""

from __future__ import annotations

import json
import sys

from cogen.sandbox.checks import SandboxPolicy, run_checks


def main() -> int:
    request = json.loads(sys.stdin.read())
    policy = SandboxPolicy.from_dict(request.get("policy", {}))
    outcome = run_checks(str(request.get("candidate", "")), policy)
    sys.stdout.write(json.dumps({"reason": outcome.reason, "detail": outcome.detail}))
    sys.stdout.flush()
    return 0


if __name__ == "__main__":
    sys.exit(main())
