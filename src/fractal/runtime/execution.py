"""Execution contexts for fetched artifact code.

An artifact is the registry's ``/code`` body: an expression that evaluates
to the module's exports once ``window`` and ``React`` are supplied. The
context receives its bindings as parameters and returns the exports; it
never installs globals.
"""

from __future__ import annotations

import json
import logging
import subprocess
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Union

from markupsafe import Markup

from ..exceptions import ExecutionError

logger = logging.getLogger(__name__)

Runner = Callable[..., subprocess.CompletedProcess]

DEFAULT_FRAMEWORK = "react"

# Reads {code, framework, modules, mode, exportName, props} from stdin and
# writes a JSON result to stdout. ``modules`` seeds the module table: each
# entry is either a JSON value or the name of a node module to require.
# Modules registered while the artifact runs are visible to its own
# ``require``.
NODE_SCRIPT = r"""
const input = JSON.parse(require('fs').readFileSync(0, 'utf8'));
const React = require(input.framework);
const table = {};
for (const [name, entry] of Object.entries(input.modules || {})) {
  table[name] = 'require' in entry ? require(entry.require) : entry.value;
}
const window = {
  React: React,
  __fractalModules: {
    registerModule: function (name, mod) { table[name] = mod; },
    getModule: function (name) { return table[name] || {}; }
  }
};
const exported = new Function('window', 'React', 'return ' + input.code)(window, React);
if (input.mode === 'inspect') {
  const names = exported && typeof exported === 'object' ? Object.keys(exported) : [];
  process.stdout.write(JSON.stringify({ exports: names, callable: typeof exported === 'function' }));
} else {
  const server = require('react-dom/server');
  const target = input.exportName === null ? exported : exported[input.exportName];
  const html = server.renderToStaticMarkup(React.createElement(target, input.props));
  process.stdout.write(JSON.stringify({ html: html }));
}
"""


class ExecutionContext(Protocol):
    """Evaluates artifact code with the given bindings and returns its exports.

    Bindings carry ``framework`` (the UI framework, or its module name for
    out-of-process contexts), ``require`` (module lookup) and ``modules``
    (a snapshot of the module table for contexts that cannot call back).
    """

    def evaluate(self, code: str, bindings: Mapping[str, Any]) -> Any:
        ...


@dataclass(frozen=True)
class NodeModule:
    """Module-table value that node should ``require`` by name."""

    name: str


def encode_modules(modules: Optional[Mapping[str, Any]]) -> Dict[str, Dict[str, Any]]:
    """Module table entries in the form the node script seeds its table from.

    ``NodeModule`` values are required by name inside node, JSON values are
    copied. Anything else has no node counterpart and is left out.
    """
    encoded: Dict[str, Dict[str, Any]] = {}
    for name, module in (modules or {}).items():
        if isinstance(module, NodeModule):
            encoded[name] = {"require": module.name}
            continue
        try:
            json.dumps(module)
        except (TypeError, ValueError):
            logger.debug("Module %s is not serialisable, not forwarded to node", name)
            continue
        encoded[name] = {"value": module}
    return encoded


class NodeComponent:
    """Proxy for one export of an artifact evaluated in node.

    Calling it with props server-renders the component and returns the
    markup, which the element renderer inserts without escaping.
    """

    def __init__(
        self,
        context: "NodeExecutionContext",
        code: str,
        framework: str,
        export_name: Optional[str],
        modules: Optional[Dict[str, Dict[str, Any]]] = None,
    ):
        self.context = context
        self.code = code
        self.framework = framework
        self.export_name = export_name
        self.modules = modules or {}

    def __call__(self, props: Optional[Mapping[str, Any]] = None) -> Markup:
        props = {k: v for k, v in dict(props or {}).items() if not callable(v)}
        result = self.context.run({
            "code": self.code,
            "framework": self.framework,
            "modules": self.modules,
            "mode": "render",
            "exportName": self.export_name,
            "props": props,
        })
        return Markup(result.get("html", ""))

    def __repr__(self) -> str:
        return f"NodeComponent(export={self.export_name!r})"


class NodeExecutionContext:
    """Evaluates artifacts with the ``node`` binary.

    Args:
        node_path: node executable.
        cwd: Directory whose ``node_modules`` provides the framework and
            ``react-dom/server``.
        runner: subprocess runner, replaceable in tests.
        timeout: Seconds per node invocation.
    """

    def __init__(
        self,
        node_path: str = "node",
        cwd: Optional[str] = None,
        runner: Optional[Runner] = None,
        timeout: int = 30,
    ) -> None:
        self.node_path = node_path
        self.cwd = cwd
        self.runner = runner or subprocess.run
        self.timeout = timeout

    def run(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            proc = self.runner(
                [self.node_path, "-e", NODE_SCRIPT],
                input=json.dumps(payload),
                capture_output=True,
                text=True,
                timeout=self.timeout,
                cwd=self.cwd,
            )
        except (OSError, subprocess.SubprocessError) as e:
            raise ExecutionError(f"Cannot run node: {e}") from e
        if proc.returncode != 0:
            raise ExecutionError(f"Artifact evaluation failed: {(proc.stderr or '').strip()}")
        try:
            return json.loads(proc.stdout or "{}")
        except json.JSONDecodeError as e:
            raise ExecutionError(f"Unexpected node output: {e}") from e

    def evaluate(self, code: str, bindings: Mapping[str, Any]) -> Union[NodeComponent, Dict[str, NodeComponent]]:
        framework = bindings.get("framework", DEFAULT_FRAMEWORK)
        if not isinstance(framework, str):
            framework = DEFAULT_FRAMEWORK
        modules = encode_modules(bindings.get("modules"))
        shape = self.run({
            "code": code,
            "framework": framework,
            "modules": modules,
            "mode": "inspect",
            "exportName": None,
            "props": {},
        })
        if shape.get("callable"):
            return NodeComponent(self, code, framework, None, modules)
        names: List[str] = shape.get("exports", [])
        return {name: NodeComponent(self, code, framework, name, modules) for name in names}


def extract_component(exports: Any) -> Any:
    """The default export, else the sole export, else the value itself.

    Raises:
        ExecutionError: If a module namespace has several exports and no default.
    """
    if isinstance(exports, Mapping):
        if "default" in exports and exports["default"] is not None:
            return exports["default"]
        if len(exports) == 1:
            return next(iter(exports.values()))
        raise ExecutionError(f"Artifact exports no default component (exports: {sorted(exports)})")
    if exports is None:
        raise ExecutionError("Artifact evaluated to nothing")
    return exports
