import marimo

__generated_with = "0.17.6"
app = marimo.App(width="full")


@app.cell
def _():
    import marimo as mo
    import time
    import numpy as np

    from kmseg.kmeans import KMeansConfig, KMeans, PixelBuffer
    from kmseg.data_loader import load_image
    from kmseg.viz import plot_segmentation, plot_sse_history
    return (
        KMeans,
        KMeansConfig,
        PixelBuffer,
        load_image,
        mo,
        np,
        plot_segmentation,
        plot_sse_history,
        time,
    )


@app.cell
def _(mo):
    mo.md("""
    # Segmentación de Imágenes por Color con K-Means

    Cada píxel es un vector de colores (1 a 4 canales). K-Means agrupa los píxeles
    en **K clusters** y reemplaza cada píxel por el color medio de su cluster.

    El algoritmo alterna dos fases hasta que ninguna etiqueta cambia
    (o se alcanza el máximo de iteraciones):
    - **Asignación**: cada píxel va al centro más cercano (distancia euclídea al cuadrado)
    - **Actualización**: cada centro pasa a ser la media de sus píxeles; los clusters vacíos
      se re-siembran con el píxel más lejano de su centro
    """)
    return


@app.cell
def _(mo):
    image_path = mo.ui.text(value="", label="Ruta de la imagen (vacío = imagen sintética)")
    k_slider = mo.ui.slider(2, 16, value=5, label="K (clusters)")
    workers_slider = mo.ui.slider(1, 8, value=4, label="Workers (paralelo)")
    mo.vstack([image_path, k_slider, workers_slider])
    return image_path, k_slider, workers_slider


@app.cell
def _(PixelBuffer, image_path, load_image, np):
    if image_path.value:
        buffer = load_image(image_path.value)
    else:
        # Gradiente sintético con tres bandas de color
        h, w = 120, 180
        x = np.linspace(0, 1, w)
        synthetic = np.zeros((h, w, 3), dtype=np.uint8)
        synthetic[..., 0] = (255 * x).astype(np.uint8)
        synthetic[: h // 3, :, 1] = 200
        synthetic[2 * h // 3:, :, 2] = 220
        buffer = PixelBuffer.from_array(synthetic)

    original = buffer.to_array().copy()
    return buffer, original


@app.cell
def _(KMeans, KMeansConfig, buffer, k_slider, time, workers_slider):
    runs = {}
    for backend in ("serial", "parallel"):
        config = KMeansConfig(
            n_clusters=k_slider.value,
            backend=backend,
            n_workers=workers_slider.value,
            random_state=2,
        )
        run_buffer = buffer.copy()

        start = time.perf_counter()
        result = KMeans(config).segment(run_buffer)
        elapsed = time.perf_counter() - start

        runs[backend] = (run_buffer, result, elapsed)
    return (runs,)


@app.cell
def _(mo, runs):
    rows = "\n".join(
        f"| {name} | {result.n_iter} | {result.status.value} | {result.sse:.1f} | {elapsed:.3f}s |"
        for name, (_, result, elapsed) in runs.items()
    )
    mo.md(f"""
    ## Serial vs Paralelo

    Con la misma semilla ambas estrategias parten de los mismos centros y deben
    llegar a las mismas etiquetas.

    | Estrategia | Iteraciones | Estado | SSE | Tiempo |
    |---|---|---|---|---|
    {rows}
    """)
    return


@app.cell
def _(original, plot_segmentation, runs):
    serial_buffer, serial_result, _ = runs["serial"]
    fig_segmentation = plot_segmentation(original, serial_buffer.to_array(), serial_result)
    fig_segmentation
    return (serial_result,)


@app.cell
def _(plot_sse_history, serial_result):
    fig_sse = plot_sse_history(serial_result)
    fig_sse
    return


@app.cell
def _(buffer, serial_result):
    import matplotlib.pyplot as plt

    # Mapa de etiquetas: un color por cluster
    label_map = serial_result.reshape_labels((buffer.height, buffer.width))
    fig_labels, ax_labels = plt.subplots(figsize=(6, 4))
    ax_labels.imshow(label_map, cmap='tab20', interpolation='nearest')
    ax_labels.set_title(f"Etiquetas ({serial_result.n_clusters} clusters)")
    ax_labels.axis('off')
    fig_labels
    return


if __name__ == "__main__":
    app.run()
