import json
from bonus_app import db
from bonus_app.models import AppSetting
from bonus_app.calculator.schema import (DEFAULT_CATEGORY_MAPPING, DEFAULT_CEREAL_KEYWORDS,
                                         DEFAULT_COLUMN_HEADERS, DEFAULT_COSMETIC_CODES,
                                         DEFAULT_COSMETIC_DISPLAY_ORDER,
                                         DEFAULT_DISPENSING_SERVICE_ITEMS,
                                         DEFAULT_PHARMACIST_SORT_ORDER, DEFAULT_SALES_SORT_ORDER)


def _json(value):
    return json.dumps(value, ensure_ascii=False)


DEFAULT_SETTINGS = {
    # key: [value, description, value_type]
    'COLUMN_HEADERS': [_json(DEFAULT_COLUMN_HEADERS), '銷售報表欄位名稱對照 (格式 JSON)', 'json'],
    'CATEGORY_MAPPING': [_json(DEFAULT_CATEGORY_MAPPING), '分類一代碼對應點數分類，未列出者為「其他」 (格式 JSON)', 'json'],
    'CEREAL_KEYWORDS': [_json(DEFAULT_CEREAL_KEYWORDS), '05-3 品名含以下字詞時歸為嬰幼兒米麥精 (格式 JSON)', 'json'],
    'SALES_SORT_ORDER': [_json(DEFAULT_SALES_SORT_ORDER), '門市人員點數表分類排序 (格式 JSON)', 'json'],
    'PHARMACIST_SORT_ORDER': [_json(DEFAULT_PHARMACIST_SORT_ORDER), '藥師點數表分類排序 (格式 JSON)', 'json'],
    'COSMETIC_CODES': [_json(DEFAULT_COSMETIC_CODES), '分類二代碼對應美妝品牌 (格式 JSON)', 'json'],
    'COSMETIC_DISPLAY_ORDER': [_json(DEFAULT_COSMETIC_DISPLAY_ORDER), '美妝品牌顯示與匯出順序 (格式 JSON)', 'json'],
    'DISPENSING_SERVICE_ITEMS': [_json(DEFAULT_DISPENSING_SERVICE_ITEMS), '藥師當月調劑件數統計品項 (格式 JSON)', 'json'],
}


def seed_data():
    """Populates the database with default settings."""
    for key, data in DEFAULT_SETTINGS.items():
        setting = AppSetting.query.filter_by(key=key).first()
        if not setting: # Only add if it doesn't exist
            setting = AppSetting(key=key, value=data[0], description=data[1], value_type=data[2])
            db.session.add(setting)
            print(f'Seeding setting: {key}')

    db.session.commit()
    print('Seeding complete.')
