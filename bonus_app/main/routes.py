# ==============================================================================
# bonus_app/main/routes.py
# ------------------------------------------------------------------------------
# Defines all user-facing routes for the main application blueprint.
# This file acts as the main controller for the web interface: every request
# loads the working session, applies one transition and stores the result.
# ==============================================================================

import os
import json
from flask import (render_template, request, flash, redirect, url_for,
                   current_app, send_file)

from bonus_app import db
from bonus_app.main import bp
from bonus_app.models import AppSetting
from bonus_app.storage import (load_working_state, store_working_state, save_session,
                               load_saved_session, saved_session_time, has_saved_session)
from bonus_app.calculator import session as workflow
from bonus_app.calculator.engine import CalculationConfig
from bonus_app.calculator.exceptions import BonusAppError
from bonus_app.calculator.exporter import build_export_stream, default_export_filename
from bonus_app.calculator.reference import load_reference_items, load_reward_rules
from bonus_app.calculator.validator import missing_columns, read_excel_rows
from bonus_app.main.forms import (AppSettingForm, UploadForm, ClassificationForm, StatusForm,
                                  CustomRewardForm, ConfirmForm)
from bonus_app.main.utils import prepare_overview, prepare_person_view

XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'

# --- Helper Functions ---

def allowed_file(filename):
    """Checks if the file extension is allowed based on the app config."""
    return '.' in filename and \
           os.path.splitext(filename)[1].lower() in current_app.config['ALLOWED_EXTENSIONS']

def flash_form_errors(form):
    for field_errors in form.errors.values():
        for error in field_errors:
            flash(str(error), 'danger')

def _read_upload(form):
    """Validates the upload form and returns the first sheet's rows, or None after flashing why not."""
    if not form.validate_on_submit():
        flash_form_errors(form)
        return None
    upload = form.file.data
    if not allowed_file(upload.filename):
        flash('檔案類型不支援，請上傳 .xlsx 檔案。', 'danger')
        return None
    try:
        return read_excel_rows(upload.stream)
    except BonusAppError as e:
        current_app.logger.warning(f"Upload '{upload.filename}' rejected: {e.message}")
        flash(e.message, 'danger')
        return None

def _person_url(name, tab=None):
    return url_for('main.person', name=name, tab=tab or request.args.get('tab', 'stage1'))

@bp.errorhandler(BonusAppError)
def handle_app_error(e):
    """Storage failures outside the explicit try blocks land here; the stored session is unchanged."""
    current_app.logger.error(f"Request to {request.path} failed: {e.message}")
    flash(e.message, 'danger')
    return redirect(url_for('main.index'))

# --- Main Application Routes ---

@bp.route('/')
def index():
    """Start page: reference lists, sales import, staff list and session actions."""
    try:
        state = load_working_state()
    except BonusAppError as e:
        flash(e.message, 'danger')
        state = workflow.new_session()

    if workflow.phase(state) == workflow.PHASE_PENDING_CLASSIFICATION:
        return redirect(url_for('main.classify'))

    return render_template('index.html',
                           overview=prepare_overview(state),
                           upload_form=UploadForm(),
                           confirm_form=ConfirmForm(),
                           saved_at=saved_session_time())

@bp.route('/import/reference', methods=['POST'])
def import_reference():
    """Replaces the pharmacist point list."""
    form = UploadForm()
    rows = _read_upload(form)
    if rows is None:
        return redirect(url_for('main.index'))
    try:
        items = load_reference_items(rows)
        store_working_state(workflow.set_reference_items(load_working_state(), items))
    except BonusAppError as e:
        flash(e.message, 'danger')
        return redirect(url_for('main.index'))
    current_app.logger.info(f"Pharmacist point list imported: {len(items)} items.")
    flash(f'已匯入藥師點數清單，共 {len(items)} 筆。', 'success')
    return redirect(url_for('main.index'))

@bp.route('/import/rewards', methods=['POST'])
def import_rewards():
    """Replaces the reward rule list."""
    form = UploadForm()
    rows = _read_upload(form)
    if rows is None:
        return redirect(url_for('main.index'))
    try:
        rules = load_reward_rules(rows)
        store_working_state(workflow.set_reward_rules(load_working_state(), rules))
    except BonusAppError as e:
        flash(e.message, 'danger')
        return redirect(url_for('main.index'))
    current_app.logger.info(f"Reward rule list imported: {len(rules)} rules.")
    flash(f'已匯入獎勵清單，共 {len(rules)} 筆。', 'success')
    return redirect(url_for('main.index'))

@bp.route('/import/sales', methods=['POST'])
def import_sales():
    """Stages a monthly sales export and sends the operator to the role assignment page."""
    form = UploadForm()
    rows = _read_upload(form)
    if rows is None:
        return redirect(url_for('main.index'))

    config = CalculationConfig()
    try:
        state = load_working_state()
        new_state = workflow.start_import(state, rows, config, confirm=form.confirm.data)
        store_working_state(new_state)
    except BonusAppError as e:
        flash(e.message, 'danger')
        return redirect(url_for('main.index'))

    missing = missing_columns(rows, config)
    if missing:
        flash(f"銷售報表缺少欄位：{'、'.join(missing)}，相關數值將以 0 或空白計算。", 'warning')
    return redirect(url_for('main.classify'))

@bp.route('/classify', methods=['GET', 'POST'])
def classify():
    """Role assignment for every staff member in the staged batch."""
    config = CalculationConfig()
    state = load_working_state()
    pending = workflow.pending_persons(state, config)
    if not pending:
        flash('目前沒有待分類的銷售報表。', 'info')
        return redirect(url_for('main.index'))

    form = ClassificationForm()
    if form.validate_on_submit():
        submitted = {entry.form.name.data: entry.form.role.data for entry in form.staff}
        roles = {name: submitted.get(name, prefill) for name, prefill in pending}
        try:
            new_state = workflow.confirm_classification(state, roles, config)
            store_working_state(new_state)
        except BonusAppError as e:
            flash(e.message, 'danger')
            return redirect(url_for('main.classify'))
        current_app.logger.info(f"Classification confirmed for {len(roles)} staff; {len(new_state['bundles'])} bundles built.")
        flash(f"計算完成，共 {len(new_state['bundles'])} 位人員。", 'success')
        if new_state['active_person']:
            return redirect(url_for('main.person', name=new_state['active_person']))
        return redirect(url_for('main.index'))

    if request.method == 'POST':
        flash_form_errors(form)
    else:
        for name, role in pending:
            form.staff.append_entry({'name': name, 'role': role})

    return render_template('classify.html', form=form, cancel_form=ConfirmForm(), title='人員職位分類')

@bp.route('/classify/cancel', methods=['POST'])
def cancel_classify():
    form = ConfirmForm()
    if form.validate_on_submit():
        store_working_state(workflow.cancel_classification(load_working_state()))
        flash('已取消匯入，保留原有資料。', 'info')
    return redirect(url_for('main.index'))

# --- Person Views and Edits ---

@bp.route('/person/<name>')
def person(name):
    """One staff member's point, reward and cosmetics tables."""
    state = load_working_state()
    view = prepare_person_view(state, name, request.args.get('tab', 'stage1'))
    if view is None:
        flash(f'找不到人員「{name}」的資料。', 'warning')
        return redirect(url_for('main.index'))

    return render_template('person.html',
                           view=view,
                           action_form=ConfirmForm(),
                           title=name)

@bp.route('/person/<name>/activate', methods=['POST'])
def activate_person(name):
    """Makes a staff member the active one and opens their tables."""
    form = ConfirmForm()
    if form.validate_on_submit():
        store_working_state(workflow.set_active_person(load_working_state(), name))
    return redirect(_person_url(name))

@bp.route('/person/<name>/stage1/<row_id>/status', methods=['POST'])
def update_status(name, row_id):
    form = StatusForm()
    if form.validate_on_submit():
        state = load_working_state()
        new_state = workflow.set_stage1_status(state, name, row_id, form.status.data, CalculationConfig())
        store_working_state(new_state)
    else:
        flash_form_errors(form)
    return redirect(_person_url(name, 'stage1'))

@bp.route('/person/<name>/stage2/<row_id>/toggle', methods=['POST'])
def toggle_reward(name, row_id):
    form = ConfirmForm()
    if form.validate_on_submit():
        store_working_state(workflow.toggle_stage2_deleted(load_working_state(), name, row_id))
    return redirect(_person_url(name, 'stage2'))

@bp.route('/person/<name>/stage2/<row_id>/reward', methods=['POST'])
def update_reward(name, row_id):
    form = CustomRewardForm()
    if form.validate_on_submit():
        state = load_working_state()
        store_working_state(workflow.set_stage2_custom_reward(state, name, row_id, form.reward.data))
    else:
        flash_form_errors(form)
    return redirect(_person_url(name, 'stage2'))

@bp.route('/person/<name>/select', methods=['POST'])
def toggle_select(name):
    form = ConfirmForm()
    if form.validate_on_submit():
        store_working_state(workflow.toggle_selection(load_working_state(), name))
    return redirect(request.referrer or url_for('main.index'))

# --- Export and Session Persistence ---

@bp.route('/export')
def export():
    """Streams the report workbook for the selected staff."""
    state = load_working_state()
    try:
        stream = build_export_stream(state['bundles'], state['selected'])
    except BonusAppError as e:
        flash(e.message, 'warning')
        return redirect(url_for('main.index'))

    filename = default_export_filename(current_app.config['EXPORT_FILENAME_PREFIX'])
    current_app.logger.info(f"Exporting {len(state['selected'])} selected staff to '{filename}'.")
    return send_file(stream, mimetype=XLSX_MIMETYPE, as_attachment=True, download_name=filename)

@bp.route('/session/save', methods=['POST'])
def save():
    form = ConfirmForm()
    if form.validate_on_submit():
        try:
            saved_at = save_session(load_working_state())
            flash(f"已儲存進度 ({saved_at:%Y-%m-%d %H:%M})。", 'success')
        except BonusAppError as e:
            flash(e.message, 'danger')
    return redirect(url_for('main.index'))

@bp.route('/session/load', methods=['POST'])
def load():
    form = ConfirmForm()
    if not form.validate_on_submit():
        flash_form_errors(form)
        return redirect(url_for('main.index'))
    if not has_saved_session():
        flash('找不到存檔', 'warning')
        return redirect(url_for('main.index'))
    try:
        snapshot, saved_at = load_saved_session()
        new_state = workflow.restore_snapshot(load_working_state(), snapshot, confirm=form.confirm.data)
        store_working_state(new_state)
    except BonusAppError as e:
        flash(e.message, 'danger')
        return redirect(url_for('main.index'))
    flash(f"已讀取 {saved_at:%Y-%m-%d %H:%M} 的存檔。", 'success')
    return redirect(url_for('main.index'))

# --- Admin Panel Routes ---

@bp.route('/admin/settings', methods=['GET'])
def admin_settings():
    settings = AppSetting.query.order_by(AppSetting.key).all()
    return render_template('admin_settings.html', settings=settings, title='計算規則設定')

@bp.route('/admin/setting/edit/<int:setting_id>', methods=['GET', 'POST'])
def edit_setting(setting_id):
    setting = db.get_or_404(AppSetting, setting_id)
    form = AppSettingForm(obj=setting)
    if form.validate_on_submit():
        new_value = form.value.data
        if setting.value_type == 'json':
            try:
                parsed_json = json.loads(new_value)
                new_value = json.dumps(parsed_json, ensure_ascii=False)
            except json.JSONDecodeError:
                flash('輸入的設定值不是有效的 JSON。', 'danger')
                return render_template('admin_form.html', form=form, title=f'編輯設定：{setting.key}', description=setting.description)
        setting.value = new_value
        db.session.commit()
        CalculationConfig.reset()
        current_app.logger.info(f"Setting '{setting.key}' updated; calculation config cache cleared.")
        flash(f'設定「{setting.key}」已更新，下次計算將套用新規則。', 'success')
        return redirect(url_for('main.admin_settings'))
    return render_template('admin_form.html', form=form, title=f'編輯設定：{setting.key}', description=setting.description)
