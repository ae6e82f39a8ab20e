"""
Stress test for the heatmap renderer with 5000 points spread over the world.
"""
import time
import random
from thermomap import HeatmapConfig, HeatmapRenderer
from thermomap.export import create_map, save_map, save_png

NUM_POINTS = 5000
WIDTH, HEIGHT = 1200, 600
PIXEL_SCALE = 2.0

# Rough population clusters: (lat, lng, spread in degrees)
CLUSTERS = [
    (40.7, -74.0, 6.0),    # US east coast
    (34.0, -118.2, 4.0),   # California
    (51.5, -0.1, 5.0),     # Western Europe
    (28.6, 77.2, 6.0),     # India
    (35.7, 139.7, 3.0),    # Japan
    (-23.5, -46.6, 5.0),   # Brazil
    (-33.9, 151.2, 3.0),   # Australia
    (6.5, 3.4, 4.0),       # West Africa
]


def generate_random_points(n):
    """Generate n points around the clusters, with a few invalid ones."""
    points = []
    for i in range(n):
        lat, lng, spread = random.choice(CLUSTERS)
        points.append({
            "lat": random.gauss(lat, spread),
            "lng": random.gauss(lng, spread),
            "intensity": random.expovariate(1 / 50.0),
            "label": f"Point {i}",
        })
    # Malformed points are skipped, not fatal
    points.append({"lat": float("nan"), "lng": 0.0, "intensity": 10})
    points.append({"lat": 10.0, "lng": float("inf"), "intensity": 10})
    return points


def run_stress_test():
    print(f"🚀 Stress Test: {NUM_POINTS} points on a {WIDTH}x{HEIGHT} @{PIXEL_SCALE}x surface")
    print()

    t0 = time.perf_counter()
    points = generate_random_points(NUM_POINTS)
    t_gen = (time.perf_counter() - t0) * 1000
    print(f"⏱️  Point generation: {t_gen:.1f}ms")

    t0 = time.perf_counter()
    renderer = HeatmapRenderer(WIDTH, HEIGHT, PIXEL_SCALE, config=HeatmapConfig(radius_modulation=0.35))
    t_init = (time.perf_counter() - t0) * 1000
    print(f"⏱️  Initialization: {t_init:.1f}ms")

    print()
    print("🔨 Rendering (cold caches)...")
    t0 = time.perf_counter()
    result = renderer.render(points)
    t_cold = (time.perf_counter() - t0) * 1000

    print("🔨 Rendering (warm caches)...")
    t0 = time.perf_counter()
    result = renderer.render(points)
    t_warm = (time.perf_counter() - t0) * 1000

    print()
    print("=" * 60)
    print(f"✅ RENDER COMPLETE")
    print(f"   Surface: {result.image.size[0]}x{result.image.size[1]} pixels")
    print(f"   Points: {result.point_count} rendered, {result.skipped_points} skipped")
    print(f"   Cold render: {t_cold:.1f}ms, warm render: {t_warm:.1f}ms")
    print()

    stats = renderer.get_stats()
    print(f"📊 Convolution stats: {stats['convolution']}")
    print(f"📦 Sprite cache: {stats['sprites']}")
    print()

    # Tooltip queries along the equator
    t0 = time.perf_counter()
    n_queries = 500
    for i in range(n_queries):
        renderer.query(WIDTH * i / n_queries, HEIGHT / 2)
    t_query = (time.perf_counter() - t0) * 1000
    print(f"⏱️  {n_queries} tooltip queries: {t_query:.1f}ms ({t_query / n_queries:.3f}ms each)")

    t0 = time.perf_counter()
    png_path = save_png(result, "./benchmark_output/stress_test_5000.png")
    m = create_map(result, renderer.config.projection, output_dir="./benchmark_output")
    map_path = save_map(m, output_dir="./benchmark_output", filename="stress_test_5000.html")
    t_map = (time.perf_counter() - t0) * 1000
    print(f"⏱️  Export: {t_map:.1f}ms")
    print(f"   Saved to: {png_path}, {map_path}")
    print()

    total = t_gen + t_init + t_cold + t_warm + t_query + t_map
    print("=" * 60)
    print("📈 PERFORMANCE BREAKDOWN")
    print("=" * 60)
    print(f"   Point generation:   {t_gen:8.1f}ms ({t_gen/total*100:5.1f}%)")
    print(f"   Initialization:     {t_init:8.1f}ms ({t_init/total*100:5.1f}%)")
    print(f"   Cold render:        {t_cold:8.1f}ms ({t_cold/total*100:5.1f}%)")
    print(f"   Warm render:        {t_warm:8.1f}ms ({t_warm/total*100:5.1f}%)")
    print(f"   Tooltip queries:    {t_query:8.1f}ms ({t_query/total*100:5.1f}%)")
    print(f"   Export:             {t_map:8.1f}ms ({t_map/total*100:5.1f}%)")
    print(f"   ─────────────────────────────────")
    print(f"   TOTAL:              {total:8.1f}ms ({total/1000:.2f}s)")

    return result

if __name__ == "__main__":
    random.seed(42)  # Reproducible results
    run_stress_test()
