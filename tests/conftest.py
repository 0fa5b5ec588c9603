"""Shared fakes: agent adapters and change sets that never spawn processes."""

import json

import pytest

from gauntlet.agents import HEALTHY, AdapterError, AdapterHealth, AdapterRegistry

SAMPLE_DIFF = """diff --git a/src/a.py b/src/a.py
@@ -1,2 +1,3 @@
 x = 1
+y = 2
 z = 3
"""


class FakeAdapter:
    """Adapter returning canned outputs in order (the last one repeats)."""

    def __init__(self, name, outputs=None, status=HEALTHY, error=None):
        self.name = name
        self.outputs = list(outputs or ['{"status": "pass"}'])
        self.status = status
        self.error = error
        self.prompts = []
        self.health_checks = 0

    async def check_health(self, check_usage_limit=False):
        self.health_checks += 1
        return AdapterHealth(self.status, "ok" if self.status == HEALTHY else "not installed")

    async def execute(self, prompt, diff, model=None, timeout_ms=None):
        self.prompts.append(prompt)
        if self.error:
            raise AdapterError(self.error)
        if len(self.outputs) > 1:
            return self.outputs.pop(0)
        return self.outputs[0]


class FakeChanges:
    """Stands in for ChangeSetResolver."""

    def __init__(self, diff=SAMPLE_DIFF, files=None):
        self._diff = diff
        self._files = ["src/a.py"] if files is None else files

    async def diff(self, scope):
        return self._diff

    async def changed_files(self):
        return list(self._files)


def fail_output(*violations):
    return json.dumps({"status": "fail", "violations": list(violations)})


@pytest.fixture
def make_registry():
    def make(*adapters):
        return AdapterRegistry(list(adapters))
    return make
