from fastapi import FastAPI, File, HTTPException, Query, UploadFile
from fastapi.responses import Response
import json

app = FastAPI(title="Mock Evidence Server", version="1.0.0")

# Detected farmland per plot, keyed by rounded (lat, lon)
PLOTS = {
    (18.52, 73.85): {"hectares": 10.3, "confidence": 90},  # honest farmer, 10 ha claimed
    (21.15, 79.09): {"hectares": 8.0, "confidence": 85},   # inflated claim, 20 ha claimed
    (26.91, 75.79): {"hectares": 4.9, "confidence": 20},   # cloudy imagery
}
DEFAULT_PLOT = {"hectares": 5.0, "confidence": 60}


def plot_key(latitude: float, longitude: float) -> tuple:
    return round(latitude, 2), round(longitude, 2)


@app.get("/health")
def health(): return {"status": "ok"}


@app.post("/ocr/extract")
async def extract_text(document: UploadFile = File(...)):
    # Documents in the stub are plain text; "OCR" is decoding
    content = await document.read()
    try:
        text = content.decode("utf-8")
    except UnicodeDecodeError:
        raise HTTPException(status_code=422, detail="unreadable document")
    return {"text": text, "confidence": 88}


@app.get("/imagery")
def imagery(lat: float = Query(...), lon: float = Query(...), dim: float = 0.1, api_key: str = "DEMO_KEY"):
    # NASA Earth compatible; the "image" just carries its coordinates
    return Response(content=json.dumps({"lat": lat, "lon": lon}).encode(), media_type="image/jpeg")


@app.post("/detect")
async def detect(image: UploadFile = File(...)):
    try:
        coords = json.loads(await image.read())
    except ValueError:
        raise HTTPException(status_code=422, detail="not a stub image")
    return PLOTS.get(plot_key(coords["lat"], coords["lon"]), DEFAULT_PLOT)
