from __future__ import annotations

from pathlib import Path

from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from pos_ingest.models import Base


def make_session_factory() -> sessionmaker:
    engine = create_engine('sqlite://', poolclass=StaticPool, connect_args={'check_same_thread': False})
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def row_count(session_factory: sessionmaker, model) -> int:
    with session_factory() as db:
        return db.execute(select(func.count()).select_from(model)).scalar_one()


def write_file(directory: str | Path, name: str, content: str | bytes) -> Path:
    path = Path(directory) / name
    path.write_bytes(content.encode('utf-8') if isinstance(content, str) else content)
    return path


SIMPLE_SALE_XML = """<?xml version="1.0" encoding="UTF-8"?>
<transSet>
  <trans type="sale">
    <trHeader>
      <trTickNum><posNum>1</posNum><trSeq>123456</trSeq></trTickNum>
      <storeNumber>001</storeNumber>
      <date>2024-01-15T10:30:00-05:00</date>
      <cashier sysid="7" period="3">Ann</cashier>
      <termMsgSN type="sale" term="1">42</termMsgSN>
      <duration>35</duration>
    </trHeader>
    <trValue>
      <trTotWTax>15.99</trTotWTax>
      <trTotTax>1.46</trTotTax>
      <trTotNoTax>14.53</trTotNoTax>
    </trValue>
    <trLines>
      <trLine type="plu">
        <trlFlags><trlPLU/></trlFlags>
        <trlDept number="10" type="norm">Grocery</trlDept>
        <trlUPC>1234567890</trlUPC>
        <trlDesc>Snack Bar</trlDesc>
        <trlQty>2</trlQty>
        <trlUnitPrice>7.99</trlUnitPrice>
        <trlLineTot>15.98</trlLineTot>
      </trLine>
    </trLines>
    <trPaylines>
      <trPayline type="sale">
        <trpPaycode mop="1">CASH</trpPaycode>
        <trpAmt>15.99</trpAmt>
      </trPayline>
    </trPaylines>
  </trans>
</transSet>
"""

DETAILED_SALE_XML = """<?xml version="1.0" encoding="UTF-8"?>
<transSet>
  <trans type="network sale" recalled="1">
    <trHeader>
      <trTickNum><posNum>2</posNum><trSeq>9001</trSeq></trTickNum>
      <storeNumber>005</storeNumber>
      <uniqueID>U-9001</uniqueID>
      <date>2024-02-01T08:00:00Z</date>
      <cashier sysid="12" period="4">Bob</cashier>
      <termMsgSN type="network sale" term="T2">77</termMsgSN>
      <trUniqueSN>5550001</trUniqueSN>
    </trHeader>
    <trValue>
      <trTotWTax>10.73</trTotWTax>
      <trTotTax>0.73</trTotTax>
      <trTotNoTax>10.00</trTotNoTax>
      <trGTotalizer>123456.78</trGTotalizer>
      <trFstmp><trFstmpTot>4.00</trFstmpTot></trFstmp>
    </trValue>
    <trLines>
      <trLine type="plu">
        <trlFlags><trlFstmp/><trlMatch/><trlLoyLnDisc/></trlFlags>
        <trlDept number="10" type="norm">Grocery</trlDept>
        <trlCat number="3">Snacks</trlCat>
        <trlUPC>0001234567890</trlUPC>
        <trlUPCEntry type="scanned"/>
        <trlDesc>Chips</trlDesc>
        <trlQty>2</trlQty>
        <trlUnitPrice>2.50</trlUnitPrice>
        <trlLineTot>5.00</trlLineTot>
        <trlTaxes>
          <trlTax cat="sales" sysid="1">0.36</trlTax>
          <trlRate cat="sales" sysid="1">7.2500</trlRate>
        </trlTaxes>
        <trlMixMatches>
          <trlMatchLine>
            <trlPromotionID promotype="mixAndMatch">500</trlPromotionID>
            <trlMatchName>2 for 4</trlMatchName>
            <trlMatchPrice>4.00</trlMatchPrice>
            <trlMatchQuantity>2</trlMatchQuantity>
            <trlMatchMixes>12</trlMatchMixes>
            <trlPromoAmount>0.98</trlPromoAmount>
          </trlMatchLine>
        </trlMixMatches>
        <trlOLNItemDisc><discAmt>0.10</discAmt><qty>1</qty><taxCred>0.01</taxCred></trlOLNItemDisc>
      </trLine>
      <trLine type="dept">
        <trlFlags/>
        <trlDept number="20" type="norm">Car Wash</trlDept>
        <trlDesc>Wash Deluxe</trlDesc>
        <trlQty>1</trlQty>
        <trlUnitPrice>5.00</trlUnitPrice>
        <trlLineTot>5.00</trlLineTot>
      </trLine>
    </trLines>
    <trPaylines>
      <trPayline type="sale">
        <trpPaycode mop="3">CREDIT</trpPaycode>
        <trpAmt>10.73</trpAmt>
        <trpCardInfo>
          <trpcAuthCode>00A123</trpcAuthCode>
          <trpcCCName>VISA</trpcCCName>
          <trpcEntryMeth>chip</trpcEntryMeth>
          <trpcAuthDateTime>2024-02-01T08:01:00Z</trpcAuthDateTime>
        </trpCardInfo>
      </trPayline>
    </trPaylines>
    <trLoyalty>
      <trLoyaltyProgram programID="Rewards Plus">
        <trloAccount>4111</trloAccount>
        <trloAutoDisc>0.50</trloAutoDisc>
        <trloCustDisc>0.25</trloCustDisc>
        <trloEntryMeth>scan</trloEntryMeth>
        <trloSubTotal>10.00</trloSubTotal>
      </trLoyaltyProgram>
    </trLoyalty>
  </trans>
</transSet>
"""


def journal_with_types(*types: str) -> str:
    records = []
    for sequence, transaction_type in enumerate(types, start=1):
        records.append(
            f"""  <trans type="{transaction_type}">
    <trHeader>
      <trTickNum><posNum>1</posNum><trSeq>{sequence}</trSeq></trTickNum>
      <storeNumber>001</storeNumber>
      <date>2024-01-15T10:{sequence:02d}:00Z</date>
    </trHeader>
    <trValue><trTotWTax>1.00</trTotWTax></trValue>
  </trans>
"""
        )
    return '<?xml version="1.0"?>\n<transSet>\n' + ''.join(records) + '</transSet>\n'


FUEL_PRICE_LEVEL_XML = """<?xml version="1.0" encoding="UTF-8"?>
<pd:PrPriceLvlPd xmlns:pd="urn:vfi-sapphire:pd" xmlns:vs="urn:vfi-sapphire:vs" xmlns:fuel="urn:vfi-sapphire:fuel">
  <vs:site>002</vs:site>
  <totals>
    <prPriceLvlInfo>
      <fuel:fuelProdBase sysid="1" name="Regular Unleaded"/>
      <priceLvlInfo>
        <fuel:fuelPriceLevel name="cash"/>
        <fuelInfo count="3" amount="30.00" volume="10.000"/>
      </priceLvlInfo>
    </prPriceLvlInfo>
    <prPriceLvlInfo>
      <fuel:fuelProdBase sysid="2" name="Diesel"/>
    </prPriceLvlInfo>
  </totals>
</pd:PrPriceLvlPd>
"""

SUMMARY_XML = """<?xml version="1.0" encoding="UTF-8"?>
<summaries>
  <store><storeid>003</storeid><storename>Main St</storename><city>Austin</city></store>
  <department><departmentid>20</departmentid><departmentname>Lotto Tickets</departmentname><type>lottery</type></department>
  <product>
    <upc>0049000000443</upc>
    <department>20</department>
    <description>Scratcher</description>
    <price>$2.00</price>
  </product>
  <promotion><promotionid>700</promotionid><name>Summer</name><upcs><upc>49000000443</upc></upcs></promotion>
  <rebate><rebateid>800</rebateid><name>Cashback</name><percentage>2.5</percentage><upc>49000000443</upc></rebate>
</summaries>
"""

GENERIC_XML = """<?xml version="1.0" encoding="UTF-8"?>
<inventory>
  <storeInfo><storeId>004</storeId></storeInfo>
  <items>
    <item><upc>555</upc><departmentId>30</departmentId></item>
  </items>
  <loyaltyMember>abc</loyaltyMember>
</inventory>
"""

PRICEBOOK_CSV = (
    'UPC,Item Description,Department ID,Department Name,Department Type,Cost,Retail Price\n'
    '0001234567890,Cola 12oz,10,Grocery,norm,$0.50,"$1,299.99"\n'
    ',No UPC,10,Grocery,norm,1,2\n'
    '00049000000443,Wash Token,40,Car Wash,norm,,9.99\n'
)
