#!/usr/bin/env python3
"""
Runs every examples/*.sema file through the driver. Each file states its
exit code in a header comment: `// Expected: exit N`.
"""

import re
import pytest
from pathlib import Path
from castsema.utils.io_utils import read_source_file
from tests.test_utils import analyze

_EXPECTED = re.compile(r"^//\s*Expected:\s*exit\s+(\d)", re.MULTILINE)

_EXAMPLES_DIR = Path(__file__).parent.parent.parent / "examples"
_EXAMPLES = {f.stem: f for f in sorted(_EXAMPLES_DIR.glob("*.sema"))}


def get_example_params():
    return [pytest.param(name, id=name) for name in _EXAMPLES]


class TestExamples:

    def test_examples_present(self):
        assert len(_EXAMPLES) >= 7

    @pytest.mark.parametrize("name", get_example_params())
    def test_exit_code(self, driver, name):
        path = _EXAMPLES[name]
        content = read_source_file(path)
        match = _EXPECTED.search(content)
        assert match, f"{path.name} has no '// Expected: exit N' header"
        result = analyze(content, driver, source_file=str(path))
        assert result.report.fatal is None, str(result.report.fatal)
        assert result.exit_code == int(match.group(1)), result.format_diagnostics(color=False)


class TestExampleDetails:
    """Spot checks of what the examples resolve to"""

    def _run(self, driver, name):
        path = _EXAMPLES[name]
        return analyze(read_source_file(path), driver, source_file=str(path))

    def test_type_casting_notes(self, driver):
        report = self._run(driver, "type_casting").report
        codes = sorted({code for record in report.noted_casts for code in record.classification.note_codes})
        assert codes == ["W0101", "W0102", "W0103"]
        assert not report.illegal_casts

    def test_tuple_members(self, driver):
        report = self._run(driver, "tuples").report
        assert str(report.type_of("make_tuple(12, \"Blabla\")")) == "tuple<int, char*>"
        assert str(report.type_of("get<1>(myTuple)")) == "char*"

    def test_mapping_values(self, driver):
        report = self._run(driver, "template_parameters").report
        assert str(report.type_of("textToIntMap[\"one\"]")) == "int"
        assert str(report.type_of("numberVec[0]")) == "int"

    def test_hello_world_violation(self, driver):
        report = self._run(driver, "hello_world").report
        assert [v.code for v in report.violations] == ["E0382"]
        assert str(report.type_of("test + test")) == "TestClass"
