"""Static catalogue of the CSV datasets the chat can search."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping, Optional


@dataclass(frozen=True)
class Dataset:
    filename: str
    description: str
    triggers: tuple
    columns: tuple
    primary_column: str
    # column -> reply sentence; placeholders: {value}, {sku}
    templates: Mapping[str, str] = field(default_factory=dict)

    def valid_columns(self, requested: Iterable[str]) -> list[str]:
        by_lower = {c.lower(): c for c in self.columns}
        out: list[str] = []
        for name in requested:
            if not isinstance(name, str):
                continue
            name = name.strip()
            canonical = name if name in self.columns else by_lower.get(name.lower())
            if canonical and canonical not in out:
                out.append(canonical)
        return out


_CATALOGUE = (
    Dataset(
        filename="barcodes.csv",
        description="Generic barcode for SKUs",
        triggers=("barcode", "ean", "upc", "scan code"),
        columns=("SKU", "Barcode", "UOM"),
        primary_column="Barcode",
        templates={"Barcode": "The barcode for SKU {sku} is {value}."},
    ),
    Dataset(
        filename="materialBasicData.csv",
        description="Basic SKU details: description, manufacturer, part numbers",
        triggers=("description", "manufacturer", "part number", "what is sku", "material group"),
        columns=("SKU", "Description", "Manufacturer", "ManufacturerPartNumber", "MaterialGroup"),
        primary_column="Description",
        templates={
            "Description": "SKU {sku} is described as: {value}.",
            "Manufacturer": "SKU {sku} is made by {value}.",
            "ManufacturerPartNumber": "The manufacturer part number for SKU {sku} is {value}.",
        },
    ),
    Dataset(
        filename="purchaseRecords.csv",
        description="Active purchase records: purchase order, vendor, date, delivery info",
        triggers=("purchase order", "po", "vendor", "supplier", "delivery date", "ordered"),
        columns=("SKU", "PurchaseOrder", "Vendor", "PODate", "DeliveryDate", "Quantity"),
        primary_column="PurchaseOrder",
        templates={
            "Vendor": "SKU {sku} is purchased from {value}.",
            "DeliveryDate": "The delivery for SKU {sku} is expected on {value}.",
        },
    ),
    Dataset(
        filename="warehouseData.csv",
        description="Stock levels, storage bins, UOM",
        triggers=("stock level", "in stock", "how many", "storage bin", "bin location", "warehouse", "uom"),
        columns=("SKU", "Plant", "StorageLocation", "StorageBin", "UnrestrictedStock", "UOM"),
        primary_column="StorageBin",
        templates={
            "UnrestrictedStock": "SKU {sku} has {value} units in unrestricted stock.",
            "StorageBin": "SKU {sku} is stored in bin {value}.",
        },
    ),
    Dataset(
        filename="stockTransactions.csv",
        description="Material movements: purchases, goods issue, transfers",
        triggers=("movement", "goods issue", "goods receipt", "transfer", "transaction", "material document"),
        columns=("SKU", "MaterialDocument", "MovementType", "PostingDate", "Quantity", "Plant"),
        primary_column="MaterialDocument",
    ),
    Dataset(
        filename="stockPricingData.csv",
        description="Moving average price of SKU",
        triggers=("price", "cost", "moving average", "map", "value of"),
        columns=("SKU", "MovingAveragePrice", "Currency", "PriceUnit"),
        primary_column="MovingAveragePrice",
        templates={"MovingAveragePrice": "The moving average price of SKU {sku} is {value}."},
    ),
    Dataset(
        filename="reservationData.csv",
        description="Internal reservations for SKU",
        triggers=("reservation", "reserved", "cost center", "requirement date"),
        columns=("SKU", "Reservation", "RequirementDate", "RequiredQuantity", "CostCenter"),
        primary_column="Reservation",
    ),
)

DATASETS: Mapping[str, Dataset] = MappingProxyType({d.filename: d for d in _CATALOGUE})


def get_dataset(name: Optional[str]) -> Optional[Dataset]:
    if not isinstance(name, str):
        return None
    return DATASETS.get(name.strip())


def describe_catalogue() -> str:
    lines = []
    for d in DATASETS.values():
        lines.append(
            f'- "{d.filename}" ({d.description})\n'
            f"    asked about as: {', '.join(d.triggers)}\n"
            f"    columns: {', '.join(d.columns)}"
        )
    return "\n".join(lines)
