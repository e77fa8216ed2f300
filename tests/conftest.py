# tests/conftest.py

import pytest
import pandas as pd
from io import BytesIO, StringIO

from config import Config


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    WTF_CSRF_ENABLED = False


SALES_CSV = """銷售人員,客戶編號,客戶名稱,品項編號,品項名稱,數量,單位,單價,小計,積點,欠款,分類一,分類二,單號,銷售日期
王小明,C1,陳一,A100,成人奶粉A,2,罐,500,1000,10,0,05-1,,S2410150001,2024-10-15
王小明,C2,林二,B200,嬰兒米精,1,盒,300,300,6,0,05-3,,S2410030002,2024-10-03
王小明,C3,張三,P001,調劑品,1,包,100,100,4,0,01-1,,S2410200003,2024-10-20
王小明,C4,李四,K300,小兒奶粉,1,罐,800,800,8,0,05-2,,S2410050004,2024-10-05
王小明,C5,周五,K301,小兒奶粉盒裝,1,盒,800,800,8,0,05-2,,S2410060005,2024-10-06
王小明,C6,吳六,R500,修護乳,2,支,200,400,2,0,01-2,08-1,S2410100006,2024-10-10
王小明,,路人,A100,成人奶粉A,1,罐,500,500,5,0,05-1,,S2410110007,2024-10-11
王小明,C8,鄭八,A100,成人奶粉A,1,罐,500,500,5,5,05-1,,S2410120008,2024-10-12
王小明,C9,何九,V600,保濕霜,3,瓶,150,450,3,0,01-2,08-2,S2410130009,2024-10-13
李藥師,C10,江十,A101,成人奶粉B,2,罐,500,1000,10,0,05-1,,S2410120010,2024-10-12
李藥師,C11,許十一,P001,調劑品,1,包,100,100,4,0,01-1,,S2410020011,2024-10-02
李藥師,C12,蔡十二,X900,一般藥品,1,盒,100,100,3,0,01-3,,S2410040012,2024-10-04
李藥師,C13,潘十三,001727,自費調劑,3,件,50,150,0,0,09-1,,S2410050013,2024-10-05
李藥師,C14,葉十四,001345,調劑藥事服務費,2,組,30,60,0,0,09-1,,S2410060014,2024-10-06
陳無獎,C15,劉十五,A100,成人奶粉A,1,罐,500,500,5,0,05-1,,S2410070015,2024-10-07
"""

POINT_LIST_CSV = """品項編號,分類
P001,調劑點數
X900,藥品
"""

REWARD_LIST_CSV = """品項編號,備註,類別,獎勵金額,形式
R500,修護系列,保養,50,現金
V600,保濕系列,保養,100,禮券
"""


def csv_rows(text):
    """Parses CSV text into raw row dicts the way an imported sheet is read."""
    from bonus_app.calculator.validator import frame_to_rows
    return frame_to_rows(pd.read_csv(StringIO(text), dtype=str))


@pytest.fixture(scope="module")
def app_with_db():
    """
    Creates a new app instance for a test module, sets up an in-memory database,
    and yields the app within an application context.
    """
    from bonus_app import create_app, db
    from bonus_app.seed import seed_data
    from bonus_app.calculator.engine import CalculationConfig

    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()
        seed_data()
        CalculationConfig.reset()
        yield app  # The tests will run here
        CalculationConfig.reset()
        db.session.remove()
        db.drop_all()


@pytest.fixture
def config():
    """Default business rules, without touching the database."""
    from bonus_app.calculator.engine import CalculationConfig
    return CalculationConfig.from_settings({})


@pytest.fixture
def reference():
    from bonus_app.calculator.reference import ReferenceData, load_reference_items, load_reward_rules
    return ReferenceData(load_reference_items(csv_rows(POINT_LIST_CSV)),
                         load_reward_rules(csv_rows(REWARD_LIST_CSV)))


@pytest.fixture
def sales_rows():
    return csv_rows(SALES_CSV)


@pytest.fixture
def roles():
    return {'王小明': 'SALES', '李藥師': 'PHARMACIST', '陳無獎': 'NO_BONUS'}


@pytest.fixture
def point_list_rows():
    return csv_rows(POINT_LIST_CSV)


@pytest.fixture
def reward_list_rows():
    return csv_rows(REWARD_LIST_CSV)


@pytest.fixture
def workbook_bytes():
    """Returns the sample sheets ('sales', 'points', 'rewards') as .xlsx bytes."""
    sources = {'sales': SALES_CSV, 'points': POINT_LIST_CSV, 'rewards': REWARD_LIST_CSV}

    def build(name):
        out = BytesIO()
        pd.read_csv(StringIO(sources[name]), dtype=str).to_excel(out, index=False, engine='openpyxl')
        return out.getvalue()
    return build


@pytest.fixture
def client(app_with_db):
    """A test client over a clean session store."""
    from bonus_app import db
    from bonus_app.models import SessionSnapshot

    SessionSnapshot.query.delete()
    db.session.commit()
    return app_with_db.test_client()
