"""Container bundle generator.

Renders the files Cloud Build needs to turn an MVP description into a
Cloud Run image: a small static React app, a multi-stage Dockerfile serving
it through nginx on port 8080, and the matching cloudbuild.yaml.
"""

import html
import json
from pathlib import Path

from mvp_deploy.config import CloudConfig
from mvp_deploy.models.deployment import DeploymentRequest
from mvp_deploy.models.generation import ContainerBundle, GeneratedFile

# Cloud Run serving port
CONTAINER_PORT = 8080


class ContainerBundleGenerator:
    """Generates a deployable container bundle for one product."""

    def __init__(
        self,
        request: DeploymentRequest,
        config: CloudConfig,
        service_name: str,
    ):
        self.request = request
        self.config = config
        self.service_name = service_name
        self.image_reference = config.image_reference(service_name)
        self.files: list[GeneratedFile] = []

    def generate(self) -> ContainerBundle:
        """Generate the complete bundle."""
        self.files = []

        # Application sources
        self._generate_app()
        self._generate_home_page()
        self._generate_features()
        self._generate_package_json()

        # Container and build configuration
        self._generate_dockerfile()
        self._generate_nginx_conf()
        self._generate_dockerignore()
        self._generate_cloudbuild()

        return ContainerBundle(
            service_name=self.service_name,
            image_reference=self.image_reference,
            files=list(self.files),
        )

    def write(self, output_dir: Path) -> ContainerBundle:
        """Generate the bundle and write it below ``output_dir``."""
        bundle = self.generate()
        for file in bundle.files:
            file_path = output_dir / file.path
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_text(file.content)
        return bundle

    def _add_file(self, path: str, content: str, file_type: str = "source") -> None:
        """Add a file to the generated files list."""
        self.files.append(
            GeneratedFile(path=path, content=content, file_type=file_type)
        )

    def _generate_app(self) -> None:
        app = '''import Home from "./pages/Home.jsx";

export default function App() {
  return <Home />;
}
'''
        self._add_file("src/App.jsx", app)

        entry = '''import React from "react";
import { createRoot } from "react-dom/client";
import App from "./App.jsx";

createRoot(document.getElementById("root")).render(<App />);
'''
        self._add_file("src/main.jsx", entry)

        title = html.escape(self.request.display_name)
        index = f'''<!doctype html>
<html lang="en">
  <head>
    <meta charset="UTF-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1.0" />
    <title>{title}</title>
  </head>
  <body>
    <div id="root"></div>
    <script type="module" src="/src/main.jsx"></script>
  </body>
</html>
'''
        self._add_file("index.html", index, "config")

        vite_config = '''import { defineConfig } from "vite";
import react from "@vitejs/plugin-react";

export default defineConfig({
  plugins: [react()],
});
'''
        self._add_file("vite.config.js", vite_config, "config")

    def _generate_home_page(self) -> None:
        name = json.dumps(self.request.display_name)
        description = json.dumps(self.request.description)
        page = f'''import Features from "../components/Features.jsx";

export default function Home() {{
  return (
    <main>
      <h1>{{{name}}}</h1>
      <p>{{{description}}}</p>
      <Features />
    </main>
  );
}}
'''
        self._add_file("src/pages/Home.jsx", page)

    def _generate_features(self) -> None:
        features = json.dumps(self.request.features, indent=2)
        component = f'''const FEATURES = {features};

export default function Features() {{
  return (
    <ul>
      {{FEATURES.map((feature) => (
        <li key={{feature}}>{{feature}}</li>
      ))}}
    </ul>
  );
}}
'''
        self._add_file("src/components/Features.jsx", component)

    def _generate_package_json(self) -> None:
        package = {
            "name": self.service_name,
            "version": "1.0.0",
            "private": True,
            "scripts": {
                "dev": "vite",
                "build": "vite build",
                "preview": "vite preview",
                "start": f"vite preview --host 0.0.0.0 --port {CONTAINER_PORT}",
            },
            "dependencies": {
                "react": "^18.2.0",
                "react-dom": "^18.2.0",
            },
            "devDependencies": {
                "@vitejs/plugin-react": "^4.2.0",
                "vite": "^5.0.0",
            },
        }
        self._add_file("package.json", json.dumps(package, indent=2), "config")

    def _generate_dockerfile(self) -> None:
        dockerfile = f'''# Stage 1: Build
FROM node:18-alpine AS builder
WORKDIR /app
COPY package.json ./
RUN npm install --include=dev --no-audit --no-fund
COPY . .
RUN npm run build

# Stage 2: Serve
FROM nginx:alpine
COPY --from=builder /app/dist /usr/share/nginx/html
COPY nginx.conf /etc/nginx/conf.d/default.conf
EXPOSE {CONTAINER_PORT}
HEALTHCHECK --interval=30s --timeout=3s --start-period=5s --retries=3 \\
  CMD wget --quiet --tries=1 --spider http://localhost:{CONTAINER_PORT}/health || exit 1
CMD ["nginx", "-g", "daemon off;"]
'''
        self._add_file("Dockerfile", dockerfile, "build")

    def _generate_nginx_conf(self) -> None:
        conf = f'''server {{
    listen {CONTAINER_PORT};
    server_name _;

    root /usr/share/nginx/html;
    index index.html;

    add_header X-Frame-Options "SAMEORIGIN" always;
    add_header X-Content-Type-Options "nosniff" always;

    gzip on;
    gzip_types text/plain text/css application/json application/javascript;

    location /health {{
        access_log off;
        return 200 "healthy\\n";
        add_header Content-Type text/plain;
    }}

    location / {{
        try_files $uri $uri/ /index.html;
    }}
}}
'''
        self._add_file("nginx.conf", conf, "build")

    def _generate_dockerignore(self) -> None:
        ignore = "\n".join(
            [
                "node_modules",
                "npm-debug.log",
                ".git",
                ".env",
                ".env.*",
                "dist",
                "Dockerfile",
                ".dockerignore",
            ]
        )
        self._add_file(".dockerignore", ignore + "\n", "build")

    def _generate_cloudbuild(self) -> None:
        # Image build and push only; the deploy step is driven separately
        image = self.image_reference
        cloudbuild = f'''steps:
  - name: 'gcr.io/cloud-builders/docker'
    args: ['build', '-t', '{image}', '-f', 'Dockerfile', '.']
    id: 'build-image'

  - name: 'gcr.io/cloud-builders/docker'
    args: ['push', '{image}']
    id: 'push-image'
    waitFor: ['build-image']

images:
  - '{image}'

timeout: '{self.config.build_timeout_seconds}s'

options:
  logging: CLOUD_LOGGING_ONLY
'''
        self._add_file("cloudbuild.yaml", cloudbuild, "build")
