from datetime import datetime

from services.export_service import CSV_COLUMNS, export_filename, render_csv, render_pdf


def test_empty_csv_has_header_only():
    body = render_csv([])
    assert body == ",".join(header for _, header in CSV_COLUMNS) + "\n"


def test_csv_quotes_commas_and_formats_flags():
    body = render_csv([{
        'address': '1 Main St, Apt 2',
        'zip_code': '02134',
        'list_price': 300000.0,
        'is_exceptional_deal': True,
        'cap_rate': None,
    }])
    header, line = body.strip().split("\n")
    assert line.startswith('"1 Main St, Apt 2",')
    assert ',02134,' in line
    assert ',300000.0,' in line
    assert line.count('yes') == 1


def test_export_filename():
    assert export_filename('csv', datetime(2024, 5, 6, 7, 8, 9)) == "roiscout-properties-20240506-070809.csv"


def test_pdf_renders_many_pages():
    rows = [
        {'address': f'{i} Very Long Street Name That Will Need Clipping', 'city': 'Austin', 'state': 'TX',
         'zip_code': '78701', 'bedrooms': 2, 'bathrooms': 1.5, 'list_price': 250000.0,
         'estimated_rent': 2000.0, 'price_to_rent_ratio': 0.8, 'cap_rate': 9.6,
         'ratio_vs_market_percent': None, 'is_exceptional_deal': i % 7 == 0}
        for i in range(120)
    ]
    body = render_pdf(rows, {'state': 'TX', 'zipCode': ['78701']})
    assert body.startswith(b'%PDF')
    assert len(body) > 1000


def test_pdf_with_no_rows():
    assert render_pdf([], {}).startswith(b'%PDF')


def test_csv_escapes_cells_that_spreadsheets_would_evaluate():
    body = render_csv([{
        'address': '=HYPERLINK("http://evil")',
        'city': '+Austin',
        'state': '@TX',
        'zip_code': '-78701',
        'list_price': -5.0,
    }])
    line = body.strip().split("\n")[1]
    assert line.startswith('"\'=HYPERLINK(""http://evil"")",\'+Austin,\'@TX,\'-78701,')
    assert ',-5.0,' in line
