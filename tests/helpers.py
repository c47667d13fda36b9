import base64
import json
from typing import Any

BUNDLE_URL = "https://cdn.example.com/static/js/main.3f2a9c1b.js"
BUNDLE_MAP_URL = "https://cdn.example.com/static/js/main.3f2a9c1b.js.map"

SOURCES = [
    "webpack:///./src/components/Button.tsx",
    "webpack:///./node_modules/react-dom/cjs/react-dom.production.min.js",
]
NAMES = ["handleClick", "render", "commitRoot"]

# generated line: generated column -> source index, original line (0-based), original column[, name]
# 1: 0 -> 0, 9, 2, handleClick | 50 -> 0, 20, 4 | 70 -> 0, 21, 0, render | 120 -> 1, 99, 10, commitRoot
# 2: 5 -> 0, 30, 0, handleClick
# 3: 0 -> 0, 40, 0, render | 20 -> 0, 41, 0 | 30 -> 0, 42, 0, commitRoot
# 4: 0 -> generated code without an original position
MAPPINGS = "AASEA,kDAWE,oBACJC,kDC8EUC;KDrEVF;AAUAC,oBACA,UACAC;A"


def make_source_map(**overrides: Any) -> dict[str, Any]:
    return {
        "version": 3,
        "file": "main.3f2a9c1b.js",
        "sources": SOURCES,
        "names": NAMES,
        "mappings": MAPPINGS,
        **overrides,
    }


def inline_source_map_comment(source_map: dict[str, Any]) -> str:
    payload = base64.b64encode(json.dumps(source_map).encode("utf-8")).decode("ascii")
    return f"//# sourceMappingURL=data:application/json;charset=utf-8;base64,{payload}"


def bundle_script(map_reference: str | None = "main.3f2a9c1b.js.map") -> str:
    script = "!function(){var a=1;console.log(a)}();\n"
    if map_reference is None:
        return script
    if map_reference.startswith("//"):
        return script + map_reference + "\n"
    return script + f"//# sourceMappingURL={map_reference}\n"


def make_profile() -> dict[str, Any]:
    """
    Small profile: (root) → main → anonymous → (garbage collector), plus (program) and (idle).

    Every sample is 1000µs apart, so self times are 2: 1000, 3: 2000, 4: 4000, 5: 1000, 6: 1000.
    """
    return {
        "nodes": [
            {"id": 1, "callFrame": {"functionName": "(root)", "url": "", "lineNumber": -1, "columnNumber": -1}, "children": [2, 3, 6]},
            {"id": 2, "callFrame": {"functionName": "(program)", "url": "", "lineNumber": -1, "columnNumber": -1}},
            {"id": 3, "callFrame": {"functionName": "main", "url": BUNDLE_URL, "lineNumber": 0, "columnNumber": 0}, "children": [4]},
            {"id": 4, "callFrame": {"functionName": "", "url": BUNDLE_URL, "lineNumber": 0, "columnNumber": 55}, "children": [5]},
            {"id": 5, "callFrame": {"functionName": "(garbage collector)", "url": "", "lineNumber": -1, "columnNumber": -1}},
            {"id": 6, "callFrame": {"functionName": "(idle)", "url": "", "lineNumber": -1, "columnNumber": -1}},
        ],
        "samples": [2, 3, 3, 4, 4, 4, 4, 5, 6, 2],
        "timeDeltas": [0] + [1000] * 9,
        "startTime": 1_000_000,
        "endTime": 1_010_000,
    }
