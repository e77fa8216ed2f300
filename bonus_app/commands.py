# ==============================================================================
# bonus_app/commands.py
# ------------------------------------------------------------------------------
# Flask CLI commands: `flask seed` and a headless `flask calculate`.
# ==============================================================================

import click

from bonus_app.calculator.schema import ROLE_SALES, ROLES


def parse_role_options(role_args):
    """Turns repeated NAME=ROLE options into a dict."""
    roles = {}
    for arg in role_args:
        name, sep, role = arg.rpartition('=')
        role = role.strip().upper()
        if not sep or not name.strip() or role not in ROLES:
            raise click.BadParameter(f"'{arg}' must look like NAME=ROLE with ROLE one of {', '.join(ROLES)}.",
                                     param_hint='--role')
        roles[name.strip()] = role
    return roles


def register_commands(app):

    @app.cli.command("seed")
    def seed():
        """Creates the tables and seeds the database with default settings."""
        from bonus_app import db
        from bonus_app.seed import seed_data
        db.create_all()
        seed_data()
        app.logger.info("Database has been seeded with default values.")

    @app.cli.command("calculate")
    @click.option('--sales', 'sales_path', required=True, type=click.Path(exists=True, dir_okay=False),
                  help='Monthly sales export (.xlsx).')
    @click.option('--points-list', 'points_path', required=True, type=click.Path(exists=True, dir_okay=False),
                  help='Pharmacist point list (.xlsx).')
    @click.option('--rewards', 'rewards_path', required=True, type=click.Path(exists=True, dir_okay=False),
                  help='Reward rule list (.xlsx).')
    @click.option('--role', 'role_args', multiple=True, metavar='NAME=ROLE',
                  help='Role for one staff member; unlisted staff are SALES.')
    @click.option('--output', 'output_path', default=None, type=click.Path(dir_okay=False),
                  help='Where to write the report. Defaults to the dated report name.')
    def calculate(sales_path, points_path, rewards_path, role_args, output_path):
        """Runs the full bonus calculation and writes the report workbook."""
        from bonus_app.calculator.engine import CalculationConfig, build_bundles, extract_persons, sort_persons
        from bonus_app.calculator.exceptions import BonusAppError
        from bonus_app.calculator.exporter import build_export_workbook, default_export_filename
        from bonus_app.calculator.reference import ReferenceData, load_reference_items, load_reward_rules
        from bonus_app.calculator.validator import missing_columns, read_excel_rows

        config = CalculationConfig()
        explicit_roles = parse_role_options(role_args)
        try:
            reference = ReferenceData(load_reference_items(read_excel_rows(points_path)),
                                      load_reward_rules(read_excel_rows(rewards_path)))
            raw_rows = read_excel_rows(sales_path)
            for column in missing_columns(raw_rows, config):
                click.echo(f"Warning: column '{column}' not found in the sales export.", err=True)

            persons = extract_persons(raw_rows, config)
            if not persons:
                raise click.ClickException("找不到銷售人員資料")
            roles = {name: explicit_roles.get(name, ROLE_SALES) for name in persons}
            bundles = build_bundles(raw_rows, roles, reference, config)

            output_path = output_path or default_export_filename(app.config['EXPORT_FILENAME_PREFIX'])
            build_export_workbook(bundles, sort_persons(bundles)).save(output_path)
        except BonusAppError as e:
            raise click.ClickException(e.message)

        click.echo(f"Wrote {len(bundles)} staff sheets to {output_path}")
