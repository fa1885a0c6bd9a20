"""
End-to-end tests of `castsema analyze`: exit codes, the type table on
stdout, diagnostics on stderr and the S-expression report.
"""

import textwrap

import pytest
import sexpdata
from castsema.__main__ import main
from castsema.utils.config import EXIT_CLEAN, EXIT_FATAL, EXIT_FINDINGS


@pytest.fixture
def source_file(tmp_path):
    def write(text, name="input.sema"):
        path = tmp_path / name
        path.write_text(textwrap.dedent(text), encoding="utf-8")
        return str(path)
    return write


def _section(report, name):
    return next(form for form in report[1:] if form[0] == sexpdata.Symbol(name))


class TestExitCodes:

    def test_clean(self, source_file, capsys):
        path = source_file("let a = 1;\nlet b: double = a;\n")
        assert main(["analyze", path]) == EXIT_CLEAN
        captured = capsys.readouterr()
        assert "analysis finished with no findings" in captured.err

    def test_findings(self, source_file, capsys):
        path = source_file("let a: int = 2.5;\n")
        assert main(["analyze", path]) == EXIT_FINDINGS
        assert "warning[W0101]" in capsys.readouterr().err

    def test_strict_promotes_findings(self, source_file):
        path = source_file("let a: int = 2.5;\n")
        assert main(["analyze", "--strict", path]) == EXIT_FATAL

    def test_fatal(self, source_file, capsys):
        path = source_file("let a = b;\n")
        assert main(["analyze", path]) == EXIT_FATAL
        err = capsys.readouterr().err
        assert "error[E0425]" in err
        assert "input.sema:1:9" in err

    def test_parse_error(self, source_file, capsys):
        path = source_file("let = ;\n")
        assert main(["analyze", path]) == EXIT_FATAL
        assert "error[E0001]" in capsys.readouterr().err

    def test_missing_file(self, tmp_path, capsys):
        assert main(["analyze", str(tmp_path / "nope.sema")]) == EXIT_FATAL
        assert "file not found" in capsys.readouterr().err

    def test_directory_is_not_a_file(self, tmp_path, capsys):
        assert main(["analyze", str(tmp_path)]) == EXIT_FATAL
        assert "not a file" in capsys.readouterr().err

    def test_unknown_command(self):
        with pytest.raises(SystemExit) as info:
            main(["check", "x.sema"])
        assert info.value.code == 2


class TestTextOutput:

    def test_type_table(self, source_file, capsys):
        path = source_file("""
            let n = 10;
            let f = (float)(n);
        """)
        main(["analyze", path])
        rows = capsys.readouterr().out.strip().split("\n")
        assert len(rows) == 3
        assert rows[0].split()[:4] == ["0", "2:9", "literal", "10"]
        assert rows[0].split()[-2:] == ["int", "rvalue"]
        assert rows[1].split()[-2:] == ["int", "lvalue"]
        assert rows[2].split()[-2:] == ["float", "rvalue"]

    def test_empty_program_prints_no_table(self, source_file, capsys):
        path = source_file("class A { };\n")
        assert main(["analyze", path]) == EXIT_CLEAN
        assert capsys.readouterr().out == ""


class TestSexprOutput:

    def test_report_on_stdout(self, source_file, capsys):
        path = source_file("let a = 1;\n")
        assert main(["analyze", "--format", "sexpr", path]) == EXIT_CLEAN
        captured = capsys.readouterr()
        parsed = sexpdata.loads(captured.out)
        assert parsed[0] == sexpdata.Symbol("report")
        assert captured.err == ""

    def test_strict_status(self, source_file, capsys):
        path = source_file("let p = reinterpret_cast<long>(nullptr);\n")
        assert main(["analyze", "--format", "sexpr", "--strict", path]) == EXIT_FATAL
        status = _section(sexpdata.loads(capsys.readouterr().out), "status")
        assert status[1] == sexpdata.Symbol("fatal")

    def test_fatal_is_reported(self, source_file, capsys):
        path = source_file("let x: Missing = 1;\n")
        assert main(["analyze", "--format", "sexpr", path]) == EXIT_FATAL
        report = sexpdata.loads(capsys.readouterr().out)
        fatal = _section(report, "fatal")
        assert fatal[1] == sexpdata.Symbol("E0412")
        assert "Missing" in fatal[2]
        assert _section(report, "status")[1] == sexpdata.Symbol("fatal")
