"""Downloadable CSV templates, one per entity type."""
from import_ledger.models.import_job import ImportEntityType

CLIENT_TEMPLATE = """person_type,rfc,first_name,last_name,second_last_name,birth_date,curp,business_name,incorporation_date,nationality,email,phone,country,state_code,city,municipality,neighborhood,street,external_number,internal_number,postal_code,reference,notes
physical,ABCD123456EF1,Juan,Pérez,García,1990-05-15,PEGJ900515HDFRRL09,,,,MX,juan@example.com,+525512345678,MX,CMX,Ciudad de México,Cuauhtémoc,Centro,Reforma,123,,06000,Near the monument,Example client
moral,ABC123456EF1,,,,,,,Empresa SA de CV,2020-01-01,,empresa@example.com,+525598765432,MX,CMX,Ciudad de México,Miguel Hidalgo,Polanco,Masaryk,456,Suite 100,11560,Corporate building,Business client
"""

TRANSACTION_TEMPLATE = """client_rfc,operation_date,operation_type,branch_postal_code,vehicle_type,brand,model,year,engine_number,plates,registration_number,flag_country_id,armor_level,amount,currency,payment_method_1,payment_amount_1,payment_method_2,payment_amount_2
ABCD123456EF1,2025-01-15,purchase,06000,land,Toyota,Camry,2024,ENG123456,ABC1234,,,Level III-A,450000,MXN,cash,200000,transfer,250000
ABC123456EF1,2025-01-20,sale,11560,land,BMW,X5,2023,ENG789012,XYZ5678,,,,750000,MXN,transfer,750000,,
"""

_TEMPLATES: dict[ImportEntityType, tuple[str, str]] = {
    ImportEntityType.CLIENT: ("clients_template.csv", CLIENT_TEMPLATE),
    ImportEntityType.TRANSACTION: ("transactions_template.csv", TRANSACTION_TEMPLATE),
}


def template_for(entity_type: ImportEntityType) -> tuple[str, str]:
    """(download file name, CSV body)"""
    return _TEMPLATES[entity_type]
