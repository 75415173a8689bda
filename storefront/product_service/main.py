# storefront/product_service/main.py
from fastapi import FastAPI, HTTPException

app = FastAPI(title="Product Service (dev mock)")


PRODUCTS = {
    1: {"id": 1, "name": "Linen Kaftan", "price": 100.00, "images": ["/images/kaftan-1.jpg"], "stock": 12},
    2: {"id": 2, "name": "Silk Scarf", "price": 45.50, "images": ["/images/scarf-1.jpg", "/images/scarf-2.jpg"], "stock": 30},
    3: {"id": 3, "name": "Leather Sandals", "price": 120.00, "images": [], "stock": 0},
}

@app.get("/products/{product_id}")
def get_product(product_id: int):
    product = PRODUCTS.get(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product
