import pytest

from retinascan.cli import build_parser, main


def test_analyze_missing_image_reports_error(tmp_path, capsys):
    missing = tmp_path / "missing.png"
    assert main(["analyze", str(missing)]) == 2

    err = capsys.readouterr().err
    assert err.startswith(f"Error: cannot read {missing}")


def test_analyze_directory_reports_error(tmp_path, capsys):
    assert main(["analyze", str(tmp_path)]) == 2
    assert "Error: cannot read" in capsys.readouterr().err


def test_parser_requires_a_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_parser_analyze_options():
    args = build_parser().parse_args(["analyze", "eye.png", "--gradcam", "--pdf", "out.pdf"])
    assert args.command == "analyze"
    assert args.gradcam is True
    assert str(args.pdf) == "out.pdf"
