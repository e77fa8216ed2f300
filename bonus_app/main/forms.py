# ==============================================================================
# bonus_app/main/forms.py
# ------------------------------------------------------------------------------
# Defines web forms using Flask-WTF for user input and validation.
# ==============================================================================

from flask_wtf import FlaskForm
from flask_wtf.file import FileField, FileRequired, FileAllowed
from wtforms import (Form, StringField, SubmitField, SelectField, TextAreaField, BooleanField,
                     HiddenField, FieldList, FormField)
from wtforms.validators import DataRequired, InputRequired, Optional, Regexp

from bonus_app.calculator.schema import ROLES, ROLE_LABELS, STATUSES

class AppSettingForm(FlaskForm):
    """Form for editing a single application setting."""
    value = TextAreaField('設定值', validators=[DataRequired()], render_kw={'rows': 6})
    submit = SubmitField('儲存變更')

class UploadForm(FlaskForm):
    """Form for uploading one workbook (point list, reward list or sales export)."""
    file = FileField('檔案', validators=[
        FileRequired(message="請選擇檔案。"),
        FileAllowed(['xlsx', 'xls'], message="僅接受 Excel 檔案 (.xlsx)。")
    ])
    confirm = BooleanField('確認清除目前進度並重新匯入')
    submit = SubmitField('匯入')

class StaffRoleForm(Form):
    """One row of the staff classification table."""
    name = HiddenField(validators=[InputRequired()])
    role = SelectField('職位', choices=[(r, ROLE_LABELS[r]) for r in ROLES],
                       validators=[InputRequired(message="請選擇職位。")])

class ClassificationForm(FlaskForm):
    """Role assignment for every staff member found in the sales export."""
    staff = FieldList(FormField(StaffRoleForm))
    submit = SubmitField('確認職位')

class StatusForm(FlaskForm):
    """Status change for one point-table row."""
    status = SelectField('狀態', choices=[(s, s) for s in STATUSES],
                         validators=[InputRequired()])
    submit = SubmitField('更新')

class CustomRewardForm(FlaskForm):
    """Reward override for one reward-table row. Leave empty to restore the rule amount."""
    reward = StringField('獎勵', validators=[
        Optional(),
        Regexp(r'^-?\d+(\.\d+)?$', message="獎勵必須是數字。")
    ])
    submit = SubmitField('更新')

class ConfirmForm(FlaskForm):
    """Generic action button; confirm is required for destructive actions."""
    confirm = BooleanField('確認')
    submit = SubmitField('確定')
