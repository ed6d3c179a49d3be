import logging
import os
import random
from typing import Optional

from flask import Flask, Response, jsonify, request

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

app = Flask(__name__)

FAILURE_RATE = float(os.getenv("MOCK_FAILURE_RATE", "0.10"))

REQUIRED_PARAMS = ("src_ip", "dest_ip", "src_port", "dst_port", "proto")

APPLICATIONS = [
    ("TLS", "Web", "Safe"),
    ("HTTP", "Web", "Acceptable"),
    ("DNS", "Network", "Acceptable"),
    ("QUIC", "Web", "Safe"),
    ("SSH", "RemoteAccess", "Acceptable"),
    ("BitTorrent", "Download", "Unsafe"),
    ("RDP", "RemoteAccess", "Potentially Dangerous"),
]

RISKS = [
    (11, "Known Proto on Non Std Port", "Medium"),
    (15, "HTTP Suspicious User-Agent", "High"),
    (16, "HTTP Numeric IP Address", "Low"),
    (27, "TLS Not Carrying HTTPS", "Low"),
    (37, "Unidirectional Traffic", "Low"),
]

CONFIDENCES = ["DPI", "DPI (partial)", "Match by port", "Match by IP"]


def _random_risks() -> list:
    picked = random.sample(RISKS, k=random.randint(0, 2))
    return [
        {
            "id": risk_id,
            "risk": name,
            "severity": severity,
            "score": {"total": random.choice([10, 50, 100]), "client": 10, "server": 0},
        }
        for risk_id, name, severity in picked
    ]


def _random_app_risk():
    """Rotate through the app_risk shapes seen from different backend versions."""
    shape = random.random()
    if shape < 0.7:
        return _random_risks()
    if shape < 0.85:
        risk_id, name, severity = random.choice(RISKS)
        return {"id": risk_id, "risk": name, "severity": severity}
    return None


def _random_enrichment(proto: str, timestamp: Optional[str]) -> dict:
    """Generate plausible flow statistics for one lookup."""
    app_protocol, category, breed = random.choice(APPLICATIONS)
    c2s_packets = random.randint(1, 500)
    s2c_packets = random.randint(0, 500)
    c2s_bytes = c2s_packets * random.randint(60, 1500)
    s2c_bytes = s2c_packets * random.randint(60, 1500)
    enrichment = {
        "app_category": category,
        "app_protocol": app_protocol,
        "duration": round(random.uniform(0.001, 120.0), 3),
        "protocol": proto,
        "src2dst_bytes": c2s_bytes,
        "dst2src_bytes": s2c_bytes,
        "src2dst_packets": c2s_packets,
        "dst2src_packets": s2c_packets,
        "data_ratio": round((c2s_bytes - s2c_bytes) / (c2s_bytes + s2c_bytes), 3),
        "iat_flow_avg": round(random.uniform(0.0, 500.0), 3),
        "pktlen_c_to_s_avg": round(c2s_bytes / c2s_packets, 2),
        "pktlen_s_to_c_avg": round(s2c_bytes / s2c_packets, 2) if s2c_packets else 0,
        "tcp_ack_count": random.randint(0, c2s_packets + s2c_packets) if proto == "TCP" else 0,
        "tcp_psh_count": random.randint(0, c2s_packets) if proto == "TCP" else 0,
        "encrypted": 1 if app_protocol in ("TLS", "QUIC", "SSH") else 0,
        "breed": breed,
        "confidence": random.choice(CONFIDENCES),
    }
    app_risk = _random_app_risk()
    if app_risk is not None:
        enrichment["app_risk"] = app_risk
        risks = app_risk if isinstance(app_risk, list) else [app_risk]
        enrichment["risk_score_total"] = sum(r.get("score", {}).get("total", 10) for r in risks)
    if timestamp:
        enrichment["first_seen"] = int(timestamp)
    return enrichment


@app.route("/health")
def health() -> tuple[Response, int]:
    return jsonify({"status": "ok"}), 200


@app.route("/enrich")
def enrich() -> tuple[Response, int]:
    """
    GET /enrich?src_ip=&dest_ip=&src_port=&dst_port=&proto=&t=

    Returns random enrichment for the flow.
    Randomly returns HTTP 500 at the configured failure rate to simulate
    backend instability - the connector must answer those with empty results.
    """
    missing = [name for name in REQUIRED_PARAMS if not request.args.get(name)]
    if missing:
        return jsonify({"error": "missing_params", "message": f"missing: {', '.join(missing)}"}), 400

    timestamp = request.args.get("t")
    if timestamp is not None and not timestamp.isdigit():
        return jsonify({"error": "invalid_t", "message": "t must be Unix seconds"}), 400

    if random.random() < FAILURE_RATE:
        logger.warning("Simulating backend failure (500)")
        return jsonify({"error": "backend_unavailable", "message": "Service temporarily unavailable"}), 500

    proto = request.args["proto"].upper()
    logger.info(
        "Enriching %s %s:%s -> %s:%s (t=%s)",
        proto,
        request.args["src_ip"],
        request.args["src_port"],
        request.args["dest_ip"],
        request.args["dst_port"],
        timestamp,
    )
    return jsonify(_random_enrichment(proto, timestamp)), 200


if __name__ == "__main__":
    port = int(os.getenv("MOCK_PORT", "5000"))
    logger.info("Starting mock enrichment API on port %d (failure_rate=%.0f%%)", port, FAILURE_RATE * 100)
    app.run(host="0.0.0.0", port=port)
