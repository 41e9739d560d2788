import logging
import os

from flask import Flask, jsonify, request
from flask_cors import CORS
from werkzeug.middleware.proxy_fix import ProxyFix

from address_filter import MAX_SUGGESTIONS, build_selection, suggestion_label, summarize_place
from address_search import MIN_QUERY_LENGTH
from data_flow import DataFlow
from geocoding import get_user_location, search_addresses
from query_builder import normalize
from weather import NoWeatherRecord, default_date_time, get_weather_data, parse_date_time

# Number of reverse proxies in front of the app.  X-Forwarded-For is only
# trusted for that many hops; with 0 it is ignored.
TRUSTED_PROXY_COUNT = int(os.environ.get("TRUSTED_PROXY_COUNT", "0"))

app = Flask(__name__)
CORS(app)
if TRUSTED_PROXY_COUNT > 0:
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=TRUSTED_PROXY_COUNT)

data_flow = DataFlow()


def _coordinate_args(lat_key="lat", lng_key="lng"):
    """Parse a lat/lng pair from the query string.  Raises KeyError/ValueError."""
    return float(request.args[lat_key]), float(request.args[lng_key])


@app.route("/api/location")
def location():
    """Return the approximate location of the requesting client."""
    try:
        data = get_user_location(request.remote_addr)
    except Exception as e:
        data_flow.show_ip_error(e)
        return jsonify({"error": f"Failed to detect location: {e}"}), 502

    data_flow.update_ip_data(data)
    return jsonify(data)


@app.route("/api/autocomplete")
def autocomplete():
    """Return ranked US street-address suggestions for a partial query.

    Pass ``lat``/``lng`` to rank suggestions nearest-first.
    """
    q = request.args.get("q", "").strip()
    if len(q) < MIN_QUERY_LENGTH:
        return jsonify({"query": "", "total": 0, "suggestions": []})

    try:
        reference = _coordinate_args()
    except (KeyError, ValueError):
        reference = None

    try:
        results = search_addresses(q, reference)
    except Exception as e:
        data_flow.show_autocomplete_error(e)
        return jsonify({"error": f"Failed to search addresses: {e}"}), 502

    data_flow.update_autocomplete_data(results, len(results))

    suggestions = [
        {**summarize_place(place), "label": suggestion_label(place)}
        for place in results[:MAX_SUGGESTIONS]
    ]
    return jsonify({"query": normalize(q), "total": len(results), "suggestions": suggestions})


@app.route("/api/select", methods=["POST"])
def select():
    """Record the suggestion the user picked and return its selection record."""
    place = request.get_json(silent=True) or {}
    try:
        selection = build_selection(place)
    except (KeyError, TypeError, ValueError):
        return jsonify({"error": "Selected place needs numeric 'lat' and 'lon'"}), 400

    data_flow.update_selected_address(selection)
    return jsonify(selection)


@app.route("/api/weather")
def weather():
    """Return the historical weather record for a location, date and hour."""
    try:
        lat, lng = _coordinate_args()
    except (KeyError, ValueError):
        return jsonify({"error": "Missing or invalid 'lat' and 'lng' parameters"}), 400

    default_date, default_time = default_date_time()
    date = request.args.get("date") or default_date
    time = request.args.get("time") or default_time

    try:
        parse_date_time(date, time)
    except ValueError:
        return jsonify({"error": "Expected 'date' as YYYY-MM-DD and 'time' as HH:MM"}), 400

    try:
        data = get_weather_data(lat, lng, date, time)
    except NoWeatherRecord as e:
        data_flow.show_weather_error(e)
        return jsonify({"error": str(e)}), 404
    except Exception as e:
        data_flow.show_weather_error(e)
        return jsonify({"error": f"Failed to fetch weather data: {e}"}), 500

    data_flow.update_weather_data(data)
    return jsonify(data)


@app.route("/api/data-flow")
def data_flow_snapshot():
    """Return what flowed through each phase most recently."""
    return jsonify(data_flow.snapshot())


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    app.run(debug=True, port=5000)
