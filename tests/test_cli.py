"""Tests for colderive CLI commands."""

import pytest
from click.testing import CliRunner

from colderive.cli.main import cli
from colderive.expressions import FunctionRegistry
from colderive.host import BehaviorRegistry

VALID_CONFIG = """\
behaviors:
  - Derive:
      HansoftProject: Game
      View: Agile
      Columns:
        - Risk:
            Expression: item.Priority * 2
        - CustomColumn:
            Name: Owner
            Expression: orNoValue(item.AssignedTo)
"""

BROKEN_CONFIG = """\
behaviors:
  - Derive:
      HansoftProject: Game
      View: Agile
      Columns:
        - Risk:
            Expression: nope(item.Priority)
        - Points:
            Expression: Priority + 1
  - Derive:
      HansoftProject: Tools
      View: Bugs
      Columns:
        - Status:
            Expression: '"Open"'
"""

ITEMS = """\
projects:
  - name: Game
    customColumns: [Owner]
    schedule:
      - id: 1
        Priority: 3
        Risk: 5
        AssignedTo: ann
        custom: {Owner: ann}
      - id: 2
        Priority: 1
        AssignedTo: null
"""


@pytest.fixture(autouse=True)
def clean_registries():
    FunctionRegistry.clear()
    BehaviorRegistry.clear()
    yield
    FunctionRegistry.clear()
    BehaviorRegistry.clear()


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def write(tmp_path):
    """Write a file into tmp_path and return its path as a string."""

    def _write(name: str, text: str) -> str:
        path = tmp_path / name
        path.write_text(text)
        return str(path)

    return _write


class TestValidate:
    def test_valid_config(self, runner, write):
        result = runner.invoke(cli, ["validate", write("behaviors.yaml", VALID_CONFIG)])

        assert result.exit_code == 0
        assert "✓ DeriveBehavior: 'Game' (Agile) (2 column(s))" in result.output
        assert "1 behavior(s) valid." in result.output

    def test_reports_all_diagnostics(self, runner, write):
        result = runner.invoke(cli, ["validate", write("behaviors.yaml", BROKEN_CONFIG)])

        assert result.exit_code == 1
        assert "✗ DeriveBehavior: 'Game' (Agile)" in result.output
        assert "Risk: Unknown function 'nope'" in result.output
        assert "Points: Unknown name 'Priority'" in result.output
        assert "✓ DeriveBehavior: 'Tools' (Bugs)" in result.output
        assert "1 behavior(s) failed to compile" in result.output

    def test_configuration_error(self, runner, write):
        config = VALID_CONFIG.replace("View: Agile", "View: Kanban")
        result = runner.invoke(cli, ["validate", write("behaviors.yaml", config)])

        assert result.exit_code == 1
        assert "Configuration error" in result.output
        assert "Kanban" in result.output

    def test_unknown_behavior_kind(self, runner, write):
        result = runner.invoke(
            cli, ["validate", write("behaviors.yaml", "behaviors:\n  - Notify: {}\n")]
        )

        assert result.exit_code == 1
        assert "'Notify' is not registered" in result.output

    def test_extension_option(self, runner, write):
        config = VALID_CONFIG.replace("orNoValue(item.AssignedTo)", "owner(item)")
        path = write("behaviors.yaml", config)

        failed = runner.invoke(cli, ["validate", path])
        passed = runner.invoke(cli, ["validate", path, "--extension", "derive_helpers"])

        assert failed.exit_code == 1
        assert passed.exit_code == 0

    def test_missing_file(self, runner, tmp_path):
        result = runner.invoke(cli, ["validate", str(tmp_path / "nope.yaml")])
        assert result.exit_code != 0


class TestRun:
    def test_prints_writes(self, runner, write):
        result = runner.invoke(
            cli,
            [
                "run",
                write("behaviors.yaml", VALID_CONFIG),
                "--items",
                write("items.yaml", ITEMS),
            ],
        )

        assert result.exit_code == 0
        assert "1: Risk 5 -> 6" in result.output
        assert "2: Risk None -> 2" in result.output
        # Owner is unchanged for item 1 and novalue for item 2
        assert "Owner" not in result.output
        assert "2 write(s)." in result.output

    def test_evaluation_errors_exit_2(self, runner, write):
        config = VALID_CONFIG.replace("item.Priority * 2", "10 / (item.Priority - 1)")
        result = runner.invoke(
            cli,
            ["run", write("behaviors.yaml", config), "--items", write("items.yaml", ITEMS)],
        )

        assert result.exit_code == 2
        assert "1: Risk 5 -> 5.0" not in result.output
        assert "1 evaluation error(s)" in result.output
        assert "Division by zero" in result.output

    def test_compilation_error_exit_1(self, runner, write):
        result = runner.invoke(
            cli,
            ["run", write("behaviors.yaml", BROKEN_CONFIG), "--items", write("items.yaml", ITEMS)],
        )

        assert result.exit_code == 1
        assert "Unknown function 'nope'" in result.output

    def test_required_project_missing(self, runner, write):
        config = VALID_CONFIG.replace("View: Agile", "View: Agile\n      RequireProject: yes")
        config = config.replace("HansoftProject: Game", "HansoftProject: Tools")
        result = runner.invoke(
            cli,
            ["run", write("behaviors.yaml", config), "--items", write("items.yaml", ITEMS)],
        )

        assert result.exit_code == 1
        assert "No project found matching 'Tools'" in result.output

    @pytest.mark.parametrize(
        "items, message",
        [
            ("projects: [\n", "Invalid YAML"),
            ("projects:\n  - schedule: []\n", "Project #1 in snapshot needs a 'name'"),
            ("projects:\n  - name: Game\n    schedule: [1, 2]\n", "must be mappings"),
            ("- Game\n", "must be a mapping"),
        ],
    )
    def test_malformed_items(self, runner, write, items, message):
        result = runner.invoke(
            cli,
            ["run", write("behaviors.yaml", VALID_CONFIG), "--items", write("items.yaml", items)],
        )

        assert result.exit_code == 1
        assert "Configuration error" in result.output
        assert message in result.output
        assert isinstance(result.exception, SystemExit)

    def test_items_required(self, runner, write):
        result = runner.invoke(cli, ["run", write("behaviors.yaml", VALID_CONFIG)])
        assert result.exit_code != 0


class TestEval:
    def test_evaluates_against_item(self, runner):
        result = runner.invoke(cli, ["eval", "item.Priority * 2", "--item", "{Priority: 3}"])

        assert result.exit_code == 0
        assert result.output.strip() == "6"

    def test_custom_columns(self, runner):
        result = runner.invoke(
            cli, ["eval", 'item["Owner"]', "--item", '{"custom": {"Owner": "ann"}}']
        )

        assert result.exit_code == 0
        assert result.output.strip() == "'ann'"

    def test_novalue(self, runner):
        result = runner.invoke(cli, ["eval", "orNoValue(item.AssignedTo)"])

        assert result.exit_code == 0
        assert result.output.strip() == "novalue"

    def test_extension(self, runner):
        result = runner.invoke(
            cli,
            ["eval", "owner(item)", "--item", "{AssignedTo: bob}", "--extension", "derive_helpers"],
        )

        assert result.exit_code == 0
        assert result.output.strip() == "'bob'"

    def test_compile_error(self, runner):
        result = runner.invoke(cli, ["eval", "nope(1) + other(2)"])

        assert result.exit_code == 1
        assert "Unknown function 'nope'" in result.output
        assert "Unknown function 'other'" in result.output

    def test_evaluation_error(self, runner):
        result = runner.invoke(cli, ["eval", "1 / 0"])

        assert result.exit_code == 1
        assert "Evaluation failed" in result.output

    def test_item_must_be_mapping(self, runner):
        result = runner.invoke(cli, ["eval", "1", "--item", "[1, 2]"])

        assert result.exit_code == 1
        assert "must be a mapping" in result.output


class TestFunctions:
    def test_lists_categories(self, runner):
        result = runner.invoke(cli, ["functions"])

        assert result.exit_code == 0
        assert "string" in result.output
        assert "len(value)" in result.output
        assert "if(condition, trueValue, falseValue?)" in result.output
        assert "concat(values...?)" in result.output

    def test_single_category(self, runner):
        result = runner.invoke(cli, ["functions", "--category", "math"])

        assert result.exit_code == 0
        assert "round(value, decimals?)" in result.output
        assert "len(" not in result.output

    def test_unknown_category(self, runner):
        result = runner.invoke(cli, ["functions", "--category", "bogus"])
        assert result.exit_code == 1

    def test_extension_functions(self, runner):
        result = runner.invoke(cli, ["functions", "--extension", "derive_helpers"])

        assert result.exit_code == 0
        assert "extension" in result.output
        assert "derive_helpers.owner(item)" in result.output
        assert result.output.count("derive_helpers.owner(") == 1

    def test_log_level_option(self, runner):
        result = runner.invoke(cli, ["--log-level", "debug", "functions", "--category", "logic"])
        assert result.exit_code == 0
