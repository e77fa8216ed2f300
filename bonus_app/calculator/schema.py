# ==============================================================================
# bonus_app/calculator/schema.py
# ------------------------------------------------------------------------------
# Defines the expected structure of the uploaded sales export, the reference
# lists, and the default business rules. This module is the single source of
# truth for column names and rule tables; the settings table may override the
# defaults at runtime.
# ==============================================================================

# --- Staff roles ---
ROLE_SALES = 'SALES'
ROLE_PHARMACIST = 'PHARMACIST'
ROLE_NO_BONUS = 'NO_BONUS'
ROLES = (ROLE_SALES, ROLE_PHARMACIST, ROLE_NO_BONUS)

ROLE_LABELS = {
    ROLE_SALES: '門市銷售',
    ROLE_PHARMACIST: '藥師',
    ROLE_NO_BONUS: '不計獎金',
}

# Display priority for the person list: sales first, then pharmacists.
ROLE_PRIORITY = {ROLE_SALES: 1, ROLE_PHARMACIST: 2}

# --- Stage-1 statuses (the values are what the operator sees and exports) ---
STATUS_DEVELOP = '開發'
STATUS_HALF_YEAR = '隔半年'
STATUS_REPURCHASE = '回購'
STATUS_DELETE = '刪除'
STATUSES = (STATUS_DEVELOP, STATUS_HALF_YEAR, STATUS_REPURCHASE, STATUS_DELETE)
COUNTED_STATUSES = (STATUS_DEVELOP, STATUS_HALF_YEAR, STATUS_REPURCHASE)

# --- Stage-2 reward formats ---
FORMAT_CASH = '現金'
FORMAT_VOUCHER = '禮券'
FORMAT_STATISTIC = '統計'

# --- Category names with special handling ---
CATEGORY_OTHER = '其他'
CATEGORY_DISPENSING = '調劑點數'
CATEGORY_ADULT_MILK_POWDER = '成人奶粉'
CATEGORY_ADULT_MILK = '成人奶水'
CATEGORY_INFANT_CEREAL = '嬰幼兒米麥精'
CATEGORY_CASH_PEDIATRIC = '現金-小兒銷售'

SALES_DIVIDED_CATEGORIES = (CATEGORY_ADULT_MILK_POWDER, CATEGORY_ADULT_MILK, CATEGORY_INFANT_CEREAL)
PHARMACIST_DIVIDED_CATEGORIES = (CATEGORY_ADULT_MILK_POWDER,)

ADULT_MILK_POWDER_CODE = '05-1'
CONTAINER_DEPOSIT_CODE = '05-2'
CONTAINER_UNITS = ('罐', '瓶')
INFANT_FOOD_CODE = '05-3'

UNKNOWN_DATE = '??'
UNKNOWN_PERSON = 'Unknown'
UNSORTED_PRIORITY = 99

# ------------------------------------------------------------------------------
# Default business rules (seeded into the app_setting table)
# ------------------------------------------------------------------------------

DEFAULT_COLUMN_HEADERS = {
    'SALES_PERSON': '銷售人員',
    'CUSTOMER_ID': '客戶編號',
    'CUSTOMER_NAME': '客戶名稱',
    'ITEM_ID': '品項編號',
    'ITEM_NAME': '品項名稱',
    'QUANTITY': '數量',
    'UNIT': '單位',
    'UNIT_PRICE': '單價',
    'SUBTOTAL': '小計',
    'POINTS': '積點',
    'DEBT': '欠款',
    'CAT_1': '分類一',
    'CAT_2': '分類二',
    'TICKET_NO': '單號',
    'SALES_DATE': '銷售日期',
}

# Older exports carry these instead of the primary column names.
FALLBACK_POINTS_COLUMN = '點數'
FALLBACK_ITEM_NAME_COLUMN = '品名'

DEFAULT_CATEGORY_MAPPING = {
    '05-1': CATEGORY_ADULT_MILK_POWDER,
    '05-2': CATEGORY_CASH_PEDIATRIC,
    '05-4': CATEGORY_ADULT_MILK,
}

DEFAULT_CEREAL_KEYWORDS = ['麥精', '米精']

DEFAULT_SALES_SORT_ORDER = {
    CATEGORY_ADULT_MILK_POWDER: 1,
    CATEGORY_ADULT_MILK: 2,
    CATEGORY_INFANT_CEREAL: 3,
    CATEGORY_CASH_PEDIATRIC: 4,
    CATEGORY_OTHER: 5,
}

DEFAULT_PHARMACIST_SORT_ORDER = {
    CATEGORY_ADULT_MILK_POWDER: 1,
    CATEGORY_OTHER: 2,
    CATEGORY_DISPENSING: 3,
}

DEFAULT_COSMETIC_CODES = {
    '08-1': '理膚寶水',
    '08-2': '薇姿',
    '08-3': '雅漾',
    '08-4': '貝膚黛瑪',
    '08-5': '舒特膚',
    '08-9': '其他美妝',
}

DEFAULT_COSMETIC_DISPLAY_ORDER = ['理膚寶水', '薇姿', '雅漾', '貝膚黛瑪', '舒特膚', '其他美妝']

DEFAULT_DISPENSING_SERVICE_ITEMS = [
    {'item_id': '001727', 'item_name': '自費調劑', 'unit_label': '件'},
    {'item_id': '001345', 'item_name': '調劑藥事服務費', 'unit_label': '組'},
]
DISPENSING_SERVICE_CATEGORY = '調劑'

# ------------------------------------------------------------------------------
# Reference list imports: accepted header names per canonical field
# ------------------------------------------------------------------------------

REFERENCE_LIST_HEADERS = {
    'item_id': ['品項編號', 'Item ID'],
    'category': ['分類', '類別'],
}

REWARD_RULE_HEADERS = {
    'item_id': ['品項編號', 'Item ID'],
    'note': ['備註'],
    'category': ['類別'],
    'reward': ['獎勵金額', '獎勵', '金額'],
    'format': ['形式'],
}

# ------------------------------------------------------------------------------
# Export layout
# ------------------------------------------------------------------------------

STAGE1_HEADERS_SALES = ['分類', '日期', '客戶編號', '品項編號', '品名', '數量', '備註', '計算點數']
STAGE1_HEADERS_PHARMACIST = ['分類', '日期', '客戶編號', '品項編號', '品名', '數量', '備註', '點數']
STAGE2_HEADERS_SALES = ['類別', '日期', '客戶編號', '品項編號', '品名', '數量', '備註', '獎勵']
STAGE2_HEADERS_PHARMACIST = ['品項編號', '品名', '數量']
STAGE3_HEADERS = ['品牌分類', '金額']
REPURCHASE_HEADERS = ['分類', '日期', '客戶編號', '品項編號', '品名', '數量', '計算點數']

PERSON_SHEET_WIDTHS = [18, 10, 12, 12, 25, 8, 20, 15]
REPURCHASE_SHEET_WIDTHS = [25, 10, 12, 12, 25, 8, 10]

REPURCHASE_SHEET_NAME = '回購總表'
SHEET_NAME_MAX_LENGTH = 31
INVALID_SHEET_NAME_CHARS = '[]:*?/\\'
