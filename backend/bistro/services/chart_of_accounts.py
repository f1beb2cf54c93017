# Overview: Default chart of accounts and the account codes posting rules depend on.

from __future__ import annotations

from typing import NamedTuple


class AccountSeed(NamedTuple):
    number: str
    name: str
    name_en: str
    type: str
    nature: str
    parent: str | None = None


# Codes referenced by posting rules. They must exist before anything posts.
CASH = "1111"
BANK = "1121"
CUSTOMERS = "1141"
VAT_INPUT = "1170"
SUPPLIERS = "2111"
VAT_OUTPUT = "2141"
PURCHASES = "5201"
SALARIES = "5210"
RETAINED_EARNINGS = "3200"

VAT_PARENT = "2100"
VAT_SETTLEMENT = "2130"
VAT_NON_RECOVERABLE = "2140"

LIABILITIES_ROOT = "0002"
ACCOUNTS_PAYABLE = "2400"
ACCRUED_PAYROLL = "2430"
GOSI_PAYABLE = "2431"

# (cash sales, credit sales) revenue accounts per branch
SALES_ACCOUNTS = {
    "china_town": ("4111", "4112"),
    "place_india": ("4121", "4122"),
}


DEFAULT_CHART: tuple[AccountSeed, ...] = (
    # 0001 Assets
    AccountSeed("0001", "الأصول", "Assets", "asset", "debit"),
    AccountSeed("1100", "أصول متداولة", "Current Assets", "asset", "debit", "0001"),
    AccountSeed("1110", "النقد وما في حكمه", "Cash and Cash Equivalents", "cash", "debit", "1100"),
    AccountSeed("1111", "صندوق رئيسي", "Main Cash", "cash", "debit", "1110"),
    AccountSeed("1112", "صندوق فرعي", "Sub Cash", "cash", "debit", "1110"),
    AccountSeed("1120", "بنوك", "Banks", "bank", "debit", "1100"),
    AccountSeed("1121", "بنك الراجحي", "Al Rajhi Bank", "bank", "debit", "1120"),
    AccountSeed("1122", "بنك الأهلي", "Al Ahli Bank", "bank", "debit", "1120"),
    AccountSeed("1123", "بنك الرياض", "Riyad Bank", "bank", "debit", "1120"),
    AccountSeed("1130", "الشيكات", "Checks", "asset", "debit", "1100"),
    AccountSeed("1131", "شيكات واردة", "Incoming Checks", "asset", "debit", "1130"),
    AccountSeed("1132", "شيكات تحت التحصيل", "Checks Under Collection", "asset", "debit", "1130"),
    AccountSeed("1140", "الذمم المدينة", "Accounts Receivable", "asset", "debit", "1100"),
    AccountSeed("1141", "عملاء", "Customers", "asset", "debit", "1140"),
    AccountSeed("1142", "ذمم مدينة أخرى", "Other Receivables", "asset", "debit", "1140"),
    AccountSeed("1150", "سلف وعهد", "Advances and Deposits", "asset", "debit", "1100"),
    AccountSeed("1151", "سلف موظفين", "Employee Advances", "asset", "debit", "1150"),
    AccountSeed("1152", "عهد نقدية", "Cash Deposits", "asset", "debit", "1150"),
    AccountSeed("1160", "المخزون", "Inventory", "asset", "debit", "1100"),
    AccountSeed("1161", "مخزون بضائع", "Merchandise Inventory", "asset", "debit", "1160"),
    AccountSeed("1162", "مخزون مواد", "Materials Inventory", "asset", "debit", "1160"),
    AccountSeed("1170", "ضريبة القيمة المضافة - مدخلات", "VAT Input", "asset", "debit", "1100"),
    AccountSeed("1200", "أصول غير متداولة", "Non-Current Assets", "asset", "debit", "0001"),
    AccountSeed("1210", "ممتلكات ومعدات", "Property and Equipment", "asset", "debit", "1200"),
    AccountSeed("1211", "أجهزة", "Equipment", "asset", "debit", "1210"),
    AccountSeed("1212", "أثاث", "Furniture", "asset", "debit", "1210"),
    AccountSeed("1213", "سيارات", "Vehicles", "asset", "debit", "1210"),
    AccountSeed("1220", "مجمع الإهلاك", "Accumulated Depreciation", "asset", "credit", "1200"),
    AccountSeed("1221", "مجمع إهلاك أجهزة", "Accumulated Depreciation - Equipment", "asset", "credit", "1220"),
    AccountSeed("1222", "مجمع إهلاك سيارات", "Accumulated Depreciation - Vehicles", "asset", "credit", "1220"),
    # 0002 Liabilities
    AccountSeed("0002", "الالتزامات", "Liabilities", "liability", "credit"),
    AccountSeed("2100", "التزامات متداولة", "Current Liabilities", "liability", "credit", "0002"),
    AccountSeed("2110", "الذمم الدائنة", "Accounts Payable", "liability", "credit", "2100"),
    AccountSeed("2111", "موردون", "Suppliers", "liability", "credit", "2110"),
    AccountSeed("2120", "مستحقات موظفين", "Employee Payables", "liability", "credit", "2100"),
    AccountSeed("2121", "رواتب مستحقة", "Salaries Payable", "liability", "credit", "2120"),
    AccountSeed("2122", "بدلات مستحقة", "Allowances Payable", "liability", "credit", "2120"),
    AccountSeed("2130", "مستحقات حكومية", "Government Payables", "liability", "credit", "2100"),
    AccountSeed("2131", "التأمينات الاجتماعية", "GOSI", "liability", "credit", "2130"),
    AccountSeed("2132", "رسوم قوى", "Labor Fees", "liability", "credit", "2130"),
    AccountSeed("2140", "ضرائب مستحقة", "Tax Payables", "liability", "credit", "2100"),
    AccountSeed("2141", "ضريبة القيمة المضافة - مستحقة", "VAT Output", "liability", "credit", "2140"),
    AccountSeed("2142", "ضرائب أخرى", "Other Taxes", "liability", "credit", "2140"),
    AccountSeed("2150", "مصروفات مستحقة", "Accrued Expenses", "liability", "credit", "2100"),
    AccountSeed("2151", "كهرباء مستحقة", "Electricity Payable", "liability", "credit", "2150"),
    AccountSeed("2152", "ماء مستحق", "Water Payable", "liability", "credit", "2150"),
    AccountSeed("2200", "التزامات غير متداولة", "Non-Current Liabilities", "liability", "credit", "0002"),
    AccountSeed("2210", "قروض طويلة الأجل", "Long-term Loans", "liability", "credit", "2200"),
    # 0003 Equity
    AccountSeed("0003", "حقوق الملكية", "Equity", "equity", "credit"),
    AccountSeed("3100", "رأس المال", "Capital", "equity", "credit", "0003"),
    AccountSeed("3200", "الأرباح المحتجزة", "Retained Earnings", "equity", "credit", "0003"),
    AccountSeed("3300", "جاري المالك", "Owner Current Account", "equity", "credit", "0003"),
    # 0004 Revenue
    AccountSeed("0004", "الإيرادات", "Revenue", "revenue", "credit"),
    AccountSeed("4100", "الإيرادات التشغيلية", "Operating Revenue", "revenue", "credit", "0004"),
    AccountSeed("4111", "مبيعات نقدية - China Town", "Cash Sales - China Town", "revenue", "credit", "4100"),
    AccountSeed("4112", "مبيعات آجلة - China Town", "Credit Sales - China Town", "revenue", "credit", "4100"),
    AccountSeed("4113", "إيرادات خدمات - China Town", "Service Revenue - China Town", "revenue", "credit", "4100"),
    AccountSeed("4121", "مبيعات نقدية - Place India", "Cash Sales - Place India", "revenue", "credit", "4100"),
    AccountSeed("4122", "مبيعات آجلة - Place India", "Credit Sales - Place India", "revenue", "credit", "4100"),
    AccountSeed("4123", "إيرادات خدمات - Place India", "Service Revenue - Place India", "revenue", "credit", "4100"),
    AccountSeed("4200", "إيرادات أخرى", "Other Revenue", "revenue", "credit", "0004"),
    AccountSeed("4210", "إيرادات غير تشغيلية", "Non-Operating Revenue", "revenue", "credit", "4200"),
    AccountSeed("4220", "خصم مكتسب من الموردين", "Discount Received from Suppliers", "revenue", "credit", "4200"),
    # 0005 Expenses
    AccountSeed("0005", "المصروفات", "Expenses", "expense", "debit"),
    AccountSeed("5100", "مصروفات تشغيلية", "Operating Expenses", "expense", "debit", "0005"),
    AccountSeed("5110", "تكلفة مبيعات", "Cost of Goods Sold", "expense", "debit", "5100"),
    AccountSeed("5120", "مصروف كهرباء", "Electricity Expense", "expense", "debit", "5100"),
    AccountSeed("5130", "مصروف ماء", "Water Expense", "expense", "debit", "5100"),
    AccountSeed("5140", "مصروف اتصالات", "Telecom Expense", "expense", "debit", "5100"),
    AccountSeed("5200", "مصروفات إدارية وعمومية", "Administrative and General Expenses", "expense", "debit", "0005"),
    AccountSeed("5201", "مشتريات", "Purchases", "expense", "debit", "5200"),
    AccountSeed("5210", "رواتب وأجور", "Salaries and Wages", "expense", "debit", "5200"),
    AccountSeed("5220", "بدلات", "Allowances", "expense", "debit", "5200"),
    AccountSeed("5230", "مصروفات حكومية", "Government Expenses", "expense", "debit", "5200"),
    AccountSeed("5250", "مصروفات بنكية", "Bank Expenses", "expense", "debit", "5200"),
    AccountSeed("5260", "مصروفات متنوعة", "Miscellaneous Expenses", "expense", "debit", "5200"),
    AccountSeed("5270", "خصم ممنوح للعملاء", "Discount Given to Customers", "expense", "debit", "5200"),
    AccountSeed("5300", "مصروفات مالية", "Financial Expenses", "expense", "debit", "0005"),
    AccountSeed("5310", "فوائد بنكية", "Bank Interest", "expense", "debit", "5300"),
    # 0006 System / control
    AccountSeed("0006", "حسابات نظامية / رقابية", "System/Control Accounts", "system", "debit"),
    AccountSeed("6100", "فروقات جرد", "Inventory Differences", "system", "debit", "0006"),
    AccountSeed("6200", "فروقات نقدية", "Cash Differences", "system", "debit", "0006"),
)


VAT_ACCOUNTS: tuple[AccountSeed, ...] = (
    AccountSeed(VAT_SETTLEMENT, "تسوية ضريبة القيمة المضافة", "VAT Settlement", "liability", "credit", VAT_PARENT),
    AccountSeed(VAT_NON_RECOVERABLE, "ضريبة قيمة مضافة غير قابلة للاسترداد", "Non-recoverable VAT", "liability", "credit", VAT_PARENT),
)


PAYROLL_ACCOUNTS: tuple[AccountSeed, ...] = (
    AccountSeed(ACCOUNTS_PAYABLE, "الذمم الدائنة", "Accounts Payable", "liability", "credit", LIABILITIES_ROOT),
    AccountSeed(ACCRUED_PAYROLL, "رواتب مستحقة", "Accrued Payroll", "liability", "credit", ACCOUNTS_PAYABLE),
    AccountSeed(GOSI_PAYABLE, "مستحقات التأمينات الاجتماعية", "GOSI Payable", "liability", "credit", ACCOUNTS_PAYABLE),
)


def sales_account_code(branch: str, credit: bool = False) -> str:
    cash_code, credit_code = SALES_ACCOUNTS.get(branch, SALES_ACCOUNTS["china_town"])
    return credit_code if credit else cash_code
