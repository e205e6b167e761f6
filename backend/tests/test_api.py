"""
HTTP surface tests: status codes, error mapping and response shapes.
"""

from hoor.services.settings_service import set_setting


def test_health(client, db_session):
    response = client.get('/health')
    assert response.status_code == 200
    assert response.json["checks"]["database"]["status"] == "healthy"


def test_catalog_crud(client, db_session):
    brand = client.post('/api/catalog/brands', json={'name': 'Layali'}).json['brand']
    model = client.post('/api/catalog/models', json={'brand_id': brand['id'], 'name': 'Kaftan'}).json['model']
    response = client.post('/api/catalog/variants', json={
        'model_id': model['id'], 'color': 'Red', 'size': 'S', 'sku': 'KFT-RED-S', 'sale_price_cents': 25000,
    })
    assert response.status_code == 201

    response = client.post('/api/catalog/variants', json={'model_id': model['id'], 'color': 'Red'})
    assert response.status_code == 400
    assert 'Missing required fields' in response.json['error']

    response = client.patch('/api/catalog/brands/999', json={'name': 'x'})
    assert response.status_code == 404


def test_checkout_and_lookup(client, no_tax, stocked, customer):
    variant, _ = stocked
    response = client.post('/api/sales', json={
        'lines': [{'variant_id': variant.id, 'qty': 2}],
        'customer_id': customer.id,
        'paid_amount_cents': 5000,
        'occurred_at': '2025-01-01T10:00:00Z',
    })
    assert response.status_code == 201
    invoice = response.json['invoice']
    assert invoice['invoice_number'] == 'INV-20250101-0001'
    assert invoice['total_cents'] == 20000
    assert len(invoice['items']) == 1

    by_number = client.get('/api/sales/by-number/INV-20250101-0001')
    assert by_number.status_code == 200
    assert by_number.json['invoice']['id'] == invoice['id']

    statement = client.get(f'/api/customers/{customer.id}/statement').json
    assert statement['balance_cents'] == 15000
    assert [e['type'] for e in statement['entries']] == ['sale', 'payment']
    payments = client.get(f'/api/customers/{customer.id}/payments').json['payments']
    assert [(p['direction'], p['amount_cents']) for p in payments] == [('in', 5000)]

    assert client.get(f'/api/customers/{customer.id}/verify').json['consistent'] is True
    assert client.get('/api/system/balances/check').json == {'consistent': True, 'drifting': []}

    events = client.get(f'/api/system/audit?entity=sales_invoice&entity_id={invoice["id"]}').json['events']
    assert [e['action'] for e in events] == ['sale.checkout']


def test_checkout_errors_map_to_status_codes(client, no_tax, stocked):
    variant, _ = stocked
    assert client.post('/api/sales', json={'lines': []}).status_code == 400
    assert client.post('/api/sales', json={'lines': [{'variant_id': 999, 'qty': 1}]}).status_code == 404
    response = client.post('/api/sales', json={
        'lines': [{'variant_id': variant.id, 'qty': 1}],
        'occurred_at': 'not-a-date',
    })
    assert response.status_code == 400


def test_preview_uses_store_tax(client, stocked):
    variant, _ = stocked
    set_setting('taxEnabled', True)
    set_setting('taxRate', 15)
    response = client.post('/api/sales/preview', json={'lines': [{'variant_id': variant.id, 'qty': 1}]})
    assert response.status_code == 200
    assert response.json['totals']['tax_amount_cents'] == 1500
    assert response.json['totals']['total_cents'] == 11500


def test_return_twice_conflicts(client, no_tax, stocked):
    variant, _ = stocked
    invoice = client.post('/api/sales', json={
        'lines': [{'variant_id': variant.id, 'qty': 1}],
        'paid_amount_cents': 10000,
    }).json['invoice']
    items = [{'sales_item_id': invoice['items'][0]['id'], 'qty': 1}]

    first = client.post('/api/returns', json={'invoice_number': invoice['invoice_number'], 'items': items})
    assert first.status_code == 201
    assert first.json['return']['payments'][0]['amount_cents'] == 10000

    second = client.post('/api/returns', json={'invoice_number': invoice['invoice_number'], 'items': items})
    assert second.status_code == 409


def test_shift_endpoints(client, db_session):
    assert client.get('/api/shifts/current').json == {'shift': None}
    assert client.post('/api/shifts/open', json={'opening_cash_cents': 1000}).status_code == 201
    assert client.post('/api/shifts/open', json={'opening_cash_cents': 1000}).status_code == 409
    assert client.post('/api/shifts/cash-movements', json={'direction': 'out', 'amount_cents': 250}).status_code == 201

    closed = client.post('/api/shifts/close', json={'closing_cash_cents': 700})
    assert closed.status_code == 200
    assert closed.json['shift']['expected_cash_cents'] == 750
    assert closed.json['shift']['difference_cents'] == -50
    assert client.post('/api/shifts/close', json={'closing_cash_cents': 0}).status_code == 404


def test_purchase_and_supplier_payment(client, variant, supplier):
    response = client.post('/api/purchases', json={
        'supplier_id': supplier.id,
        'lines': [{'variant_id': variant.id, 'qty': 4, 'unit_cost_cents': 2500}],
    })
    assert response.status_code == 201
    assert response.json['purchase']['total_cents'] == 10000

    paid = client.post(f'/api/suppliers/{supplier.id}/payments', json={'amount_cents': 4000})
    assert paid.status_code == 201
    statement = client.get(f'/api/suppliers/{supplier.id}/statement').json
    assert statement['balance_cents'] == 6000

    payments = client.get(f'/api/suppliers/{supplier.id}/payments').json['payments']
    assert [p['amount_cents'] for p in payments] == [4000]

    number = response.json['purchase']['invoice_number']
    by_number = client.get(f'/api/purchases/by-number/{number}')
    assert by_number.json['purchase']['id'] == response.json['purchase']['id']
    assert client.get('/api/purchases/by-number/PUR-19990101-0001').status_code == 404


def test_settings_endpoints(client, db_session):
    response = client.put('/api/settings/storeName', json={'value': 'Hoor Boutique'})
    assert response.status_code == 200
    assert client.get('/api/settings').json['settings']['storeName'] == 'Hoor Boutique'
    assert client.put('/api/settings/storeName', json={}).status_code == 400
    assert client.get('/api/settings/tax').json == {'tax_enabled': True, 'tax_rate_bps': 1500}


def test_backup_round_trip_over_http(client, variant):
    document = client.get('/api/system/backup').json
    assert document['version'] == 1

    assert client.post('/api/system/backup/import', json={'version': 7, 'data': {}}).status_code == 400
    restored = client.post('/api/system/backup/import', json=document)
    assert restored.status_code == 200
    assert restored.json['imported']['variants'] == 1


def test_inventory_endpoints(client, variant):
    assert client.post('/api/inventory/adjust', json={'variant_id': variant.id, 'quantity_delta': 3}).status_code == 201
    assert client.get(f'/api/inventory/stock/{variant.id}').json['stock'] == 3
    assert client.get('/api/inventory/stock/999').status_code == 404
    results = client.get('/api/inventory/search?q=ABY-BLK').json
    assert [r['id'] for r in results['results']] == [variant.id]
